from fastapi.testclient import TestClient

from smart_inventory import main
from smart_inventory.backends import RestDataService, SqlDataService
from smart_inventory.notifications import Notifier
from smart_inventory.settings import Settings


def test_remote_backend_when_url_is_configured():
    service = main.build_data_service(
        Settings(DATA_SERVICE_URL='https://data.example.com', _env_file=None)
    )

    assert isinstance(service, RestDataService)
    assert str(service.client.base_url) == 'https://data.example.com/rest/v1/'


def test_local_backend_by_default(tmp_path):
    service = main.build_data_service(
        Settings(DATABASE_URL=f'sqlite:///{tmp_path}/db.sqlite', _env_file=None)
    )

    assert isinstance(service, SqlDataService)


def test_lifespan_loads_store(tmp_path, monkeypatch):
    monkeypatch.setattr(
        main,
        'settings',
        Settings(DATABASE_URL=f'sqlite:///{tmp_path}/db.sqlite', _env_file=None),
    )

    with TestClient(main.app) as client:
        response = client.get('/')
        store = main.app.state.store

    assert response.status_code == 200
    assert store.products == []
    assert store.is_loading is False


def test_notifier_keeps_newest_first():
    notifier = Notifier(maxlen=2)
    notifier.success('one')
    notifier.warning('two')
    notifier.error('three', 'failed')

    recent = notifier.recent()

    assert [n.title for n in recent] == ['three', 'two']
    assert recent[0].variant == 'destructive'
