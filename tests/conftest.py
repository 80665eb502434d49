import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from smart_inventory.backends import DataService, SqlDataService
from smart_inventory.data_access import DataAccess
from smart_inventory.exceptions import RemoteOperationError
from smart_inventory.main import app
from smart_inventory.models import User, table_registry
from smart_inventory.schemas import ProductCreate
from smart_inventory.security import get_password_hash
from smart_inventory.store import StoreData, get_store


class FlakyService(DataService):
    """Passes calls through to another service, failing the ones asked for.

    `fail` holds (method, table) pairs; `calls` records every call made.
    A call whose pair is in `gates` waits for that event before running.
    """

    def __init__(self, inner: DataService):
        self.inner = inner
        self.fail: set[tuple[str, str]] = set()
        self.fail_ids: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.gates: dict[tuple[str, str], asyncio.Event] = {}

    async def _check(self, method, table, row_id=None):
        self.calls.append((method, table))
        gate = self.gates.get((method, table))
        if gate is not None:
            await gate.wait()
        if (method, table) in self.fail or row_id in self.fail_ids:
            raise RemoteOperationError(f'{method} {table} rejected')

    async def select(self, table, filters=None, order=None, descending=False):
        await self._check('select', table)
        return await self.inner.select(table, filters, order, descending)

    async def insert(self, table, rows):
        await self._check('insert', table)
        return await self.inner.insert(table, rows)

    async def update(self, table, row_id, values):
        await self._check('update', table, row_id)
        return await self.inner.update(table, row_id, values)

    async def delete(self, table, filters=None):
        await self._check('delete', table)
        return await self.inner.delete(table, filters)

    async def upsert(self, table, rows, on_conflict):
        await self._check('upsert', table)
        return await self.inner.upsert(table, rows, on_conflict)


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    table_registry.metadata.create_all(engine)
    yield engine
    table_registry.metadata.drop_all(engine)


@pytest.fixture
def service(engine):
    return FlakyService(SqlDataService(engine))


@pytest.fixture
def store(service):
    return StoreData(DataAccess(service))


@pytest.fixture
def product_data():
    def make(**overrides):
        values = {
            'name': 'Coffee Beans',
            'description': 'Dark roast, 1kg',
            'category': 'Groceries',
            'price': 5.0,
            'stock': 10,
            'threshold': 3,
        }
        values.update(overrides)
        return ProductCreate(**values)

    return make


def _insert_user(engine, name, email, role, password):
    user = User(
        id=str(uuid4()),
        name=name,
        email=email,
        role=role,
        password=get_password_hash(password),
    )
    with Session(engine) as session:
        session.add(user)
        session.commit()
        session.refresh(user)
        return {
            'id': user.id,
            'name': name,
            'email': email,
            'role': role,
            'password': password,
        }


@pytest.fixture
def admin(engine):
    return _insert_user(
        engine, 'Admin User', 'admin@example.com', 'admin', 'admin123'
    )


@pytest.fixture
def cashier(engine):
    return _insert_user(
        engine, 'John Cashier', 'john@example.com', 'cashier', 'cashier123'
    )


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.state.registers = {}
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.registers = {}


def _token(client, user):
    response = client.post(
        '/auth/token',
        data={'username': user['email'], 'password': user['password']},
    )
    return response.json()['access_token']


@pytest.fixture
def admin_headers(client, admin):
    return {'Authorization': f'Bearer {_token(client, admin)}'}


@pytest.fixture
def cashier_headers(client, cashier):
    return {'Authorization': f'Bearer {_token(client, cashier)}'}


@pytest.fixture
def product(client, admin_headers):
    response = client.post(
        '/products/',
        headers=admin_headers,
        json={
            'name': 'Coffee Beans',
            'description': 'Dark roast, 1kg',
            'category': 'Groceries',
            'price': 5.0,
            'stock': 10,
            'threshold': 3,
        },
    )
    return response.json()
