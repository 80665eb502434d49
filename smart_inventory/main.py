import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import DB, schemas
from .backends import RestDataService, SqlDataService
from .data_access import DataAccess
from .exceptions import (
    PartialWriteError,
    RecordNotFound,
    RemoteOperationError,
    ValidationFailed,
)
from .routers import auth, pos, products, reports, sales, store_settings, users
from .security import T_CurrentUser
from .settings import Settings
from .store import StoreData, get_store

settings = Settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)


def build_data_service(settings: Settings):
    if settings.DATA_SERVICE_URL:
        logger.info('Using remote data service at %s', settings.DATA_SERVICE_URL)
        return RestDataService(
            settings.DATA_SERVICE_URL,
            api_key=settings.DATA_SERVICE_KEY,
            timeout=settings.DATA_SERVICE_TIMEOUT,
        )
    engine = DB.make_engine(settings.DATABASE_URL)
    DB.create_tables(engine)
    logger.info('Using local database %s', settings.DATABASE_URL)
    return SqlDataService(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = build_data_service(settings)
    store = StoreData(DataAccess(service))
    try:
        await store.fetch_all_data()
    except RemoteOperationError:
        logger.warning('Starting with empty data; initial load failed')
    app.state.store = store
    yield
    await service.aclose()


app = FastAPI(
    title='Smart Inventory',
    description='Point of sale and inventory management API.',
    version='1.0.0',
    lifespan=lifespan,
)
app.state.registers = {}

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(products.router)
app.include_router(sales.router)
app.include_router(pos.router)
app.include_router(reports.router)
app.include_router(store_settings.router)


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST, content={'detail': str(exc)}
    )


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(
        status_code=HTTPStatus.NOT_FOUND, content={'detail': str(exc)}
    )


@app.exception_handler(PartialWriteError)
async def partial_write_handler(request: Request, exc: PartialWriteError):
    return JSONResponse(
        status_code=HTTPStatus.BAD_GATEWAY,
        content={
            'detail': str(exc),
            'result': exc.result.model_dump(mode='json', by_alias=True),
        },
    )


@app.exception_handler(RemoteOperationError)
async def remote_error_handler(request: Request, exc: RemoteOperationError):
    return JSONResponse(
        status_code=HTTPStatus.BAD_GATEWAY, content={'detail': str(exc)}
    )


@app.get('/', response_model=schemas.Message)
def read_root():
    return {'message': 'Smart Inventory API is running'}


@app.get('/notifications', response_model=list[schemas.Notification])
def read_notifications(
    store: Annotated[StoreData, Depends(get_store)],
    current_user: T_CurrentUser,
    limit: int = 20,
):
    return store.notifier.recent(limit)
