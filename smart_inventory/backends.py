"""Data service backends.

Everything the application persists goes through a `DataService`: a
table-oriented CRUD interface. `RestDataService` talks to a remote
PostgREST-style service over httpx; `SqlDataService` keeps the same tables in
a local SQLAlchemy database, which is what development and the tests use.

Rows are plain dicts keyed by snake_case column names. Backends do not
batch writes into transactions across calls; every call stands alone.
"""
import logging
from http import HTTPStatus
from typing import Any
from uuid import uuid4

import httpx
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import RecordNotFound, RemoteOperationError
from .models import table_registry

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def new_id() -> str:
    return str(uuid4())


class DataService:
    """Contract shared by every backend."""

    async def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        raise NotImplementedError

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        raise NotImplementedError

    async def update(self, table: str, row_id: str, values: Row) -> Row:
        raise NotImplementedError

    async def delete(
        self, table: str, filters: dict[str, Any] | None = None
    ) -> int:
        """Delete matching rows; no filters deletes every row."""
        raise NotImplementedError

    async def upsert(
        self, table: str, rows: list[Row], on_conflict: str
    ) -> list[Row]:
        raise NotImplementedError

    async def aclose(self):
        pass


# --------------------------------------------------------------------------
# Remote service
# --------------------------------------------------------------------------


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or HTTPStatus(response.status_code).phrase
    if isinstance(body, dict):
        return str(
            body.get('message')
            or body.get('detail')
            or body.get('error')
            or body
        )
    return str(body)


class RestDataService(DataService):
    def __init__(
        self,
        base_url: str,
        api_key: str = '',
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {'Content-Type': 'application/json'}
        if api_key:
            headers['apikey'] = api_key
            headers['Authorization'] = f'Bearer {api_key}'
        self.client = httpx.AsyncClient(
            base_url=f'{base_url.rstrip("/")}/rest/v1',
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = {'Prefer': prefer} if prefer else None
        try:
            response = await self.client.request(
                method,
                f'/{table}',
                params=params,
                json=jsonable_encoder(json) if json is not None else None,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.error(
                '%s %s failed with %s: %s',
                method, table, exc.response.status_code, detail,
            )
            raise RemoteOperationError(
                detail, status_code=exc.response.status_code
            ) from exc
        except httpx.RequestError as exc:
            logger.error('%s %s could not reach data service: %s',
                         method, table, exc)
            raise RemoteOperationError(
                f'Data service unavailable: {exc}'
            ) from exc
        return response

    @staticmethod
    def _filter_params(filters: dict[str, Any] | None) -> dict[str, str]:
        return {
            column: f'eq.{value}' for column, value in (filters or {}).items()
        }

    async def select(self, table, filters=None, order=None, descending=False):
        params = {'select': '*', **self._filter_params(filters)}
        if order:
            params['order'] = f'{order}.{"desc" if descending else "asc"}'
        response = await self._request('GET', table, params=params)
        return response.json()

    async def insert(self, table, rows):
        if not rows:
            return []
        response = await self._request(
            'POST', table, json=rows, prefer='return=representation'
        )
        return response.json()

    async def update(self, table, row_id, values):
        response = await self._request(
            'PATCH',
            table,
            params={'id': f'eq.{row_id}'},
            json=values,
            prefer='return=representation',
        )
        rows = response.json()
        if not rows:
            raise RecordNotFound(f'{table} row {row_id} not found')
        return rows[0]

    async def delete(self, table, filters=None):
        # PostgREST refuses unfiltered deletes
        params = self._filter_params(filters) or {'id': 'not.is.null'}
        response = await self._request(
            'DELETE', table, params=params, prefer='return=representation'
        )
        return len(response.json())

    async def upsert(self, table, rows, on_conflict):
        if not rows:
            return []
        response = await self._request(
            'POST',
            table,
            params={'on_conflict': on_conflict},
            json=rows,
            prefer='resolution=merge-duplicates,return=representation',
        )
        return response.json()

    async def aclose(self):
        await self.client.aclose()


# --------------------------------------------------------------------------
# Local SQL database
# --------------------------------------------------------------------------


class SqlDataService(DataService):
    """Same tables in a SQLAlchemy database.

    Sessions are synchronous, so each call runs in the thread pool and the
    event loop stays free while the database works.
    """

    def __init__(self, engine):
        self.engine = engine

    @staticmethod
    def _table(name: str):
        try:
            return table_registry.metadata.tables[name]
        except KeyError:
            raise RemoteOperationError(f'Unknown table {name}')

    @staticmethod
    def _where(query, table, filters):
        for column, value in (filters or {}).items():
            query = query.where(table.c[column] == value)
        return query

    @staticmethod
    def _primary_key(table):
        return list(table.primary_key.columns)[0]

    def _fetch(self, session, table, keys) -> list[Row]:
        pk = self._primary_key(table)
        found = {
            row[pk.name]: dict(row)
            for row in session.execute(
                select(table).where(pk.in_(keys))
            ).mappings()
        }
        return [found[key] for key in keys if key in found]

    async def _run(self, func, *args):
        try:
            return await run_in_threadpool(func, *args)
        except SQLAlchemyError as exc:
            raise RemoteOperationError(str(exc)) from exc

    async def select(self, table, filters=None, order=None, descending=False):
        return await self._run(
            self._select, self._table(table), filters, order, descending
        )

    def _select(self, t, filters, order, descending):
        query = self._where(select(t), t, filters)
        if order:
            column = t.c[order]
            query = query.order_by(column.desc() if descending else column)
        with Session(self.engine) as session:
            return [dict(row) for row in session.execute(query).mappings()]

    async def insert(self, table, rows):
        if not rows:
            return []
        return await self._run(self._insert, self._table(table), rows)

    def _insert(self, t, rows):
        pk = self._primary_key(t)
        prepared = []
        for row in rows:
            row = dict(row)
            if pk.name == 'id' and not row.get('id'):
                row['id'] = new_id()
            prepared.append(row)
        with Session(self.engine) as session:
            for row in prepared:
                session.execute(insert(t).values(**row))
            session.commit()
            return self._fetch(session, t, [row[pk.name] for row in prepared])

    async def update(self, table, row_id, values):
        return await self._run(self._update, self._table(table), row_id, values)

    def _update(self, t, row_id, values):
        pk = self._primary_key(t)
        with Session(self.engine) as session:
            result = session.execute(
                update(t).where(pk == row_id).values(**values)
            )
            if result.rowcount == 0:
                session.rollback()
                raise RecordNotFound(f'{t.name} row {row_id} not found')
            session.commit()
            return self._fetch(session, t, [row_id])[0]

    async def delete(self, table, filters=None):
        return await self._run(self._delete, self._table(table), filters)

    def _delete(self, t, filters):
        with Session(self.engine) as session:
            result = session.execute(self._where(delete(t), t, filters))
            session.commit()
            return result.rowcount

    async def upsert(self, table, rows, on_conflict):
        return await self._run(
            self._upsert, self._table(table), rows, on_conflict
        )

    def _upsert(self, t, rows, on_conflict):
        column = t.c[on_conflict]
        keys = []
        with Session(self.engine) as session:
            for row in rows:
                key = row[on_conflict]
                exists = session.execute(
                    select(column).where(column == key)
                ).first()
                if exists:
                    session.execute(
                        update(t).where(column == key).values(**row)
                    )
                else:
                    session.execute(insert(t).values(**row))
                keys.append(key)
            session.commit()
            return self._fetch(session, t, keys)
