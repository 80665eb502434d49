from typing import Annotated

from fastapi import APIRouter, Depends

from .. import schemas
from ..security import T_Admin
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/settings', tags=['settings'])


@router.get('/', response_model=dict[str, str | None])
async def read_settings(store: T_Store, admin: T_Admin):
    return await store.data.list_settings()


@router.put('/{key}', response_model=schemas.Setting)
async def update_setting(
    key: str, setting: schemas.SettingUpdate, store: T_Store, admin: T_Admin
):
    result = await store.data.upsert_setting(key, setting.value)
    store.notifier.success('Success', 'Setting updated successfully')
    return result
