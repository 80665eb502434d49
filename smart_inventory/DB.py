from sqlalchemy import create_engine

from .models import table_registry
from .settings import Settings


def make_engine(database_url: str | None = None):
    url = database_url or Settings().DATABASE_URL
    connect_args = {}
    if url.startswith('sqlite'):
        connect_args['check_same_thread'] = False
    return create_engine(url, connect_args=connect_args)


def create_tables(engine):
    table_registry.metadata.create_all(engine)
