from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm

from .. import schemas, security
from ..store import StoreData, get_store

router = APIRouter(prefix='/auth', tags=['auth'])

T_Store = Annotated[StoreData, Depends(get_store)]


@router.post('/token', response_model=schemas.Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    store: T_Store,
):
    user = await security.authenticate(
        store, form_data.username, form_data.password
    )
    if not user:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail='Incorrect email or password',
        )

    access_token = security.create_access_token(data={'sub': user.id})
    return {'access_token': access_token, 'token_type': 'bearer'}


@router.post('/refresh_token', response_model=schemas.Token)
def refresh_access_token(user: security.T_CurrentUser):
    new_access_token = security.create_access_token(data={'sub': user.id})
    return {'access_token': new_access_token, 'token_type': 'bearer'}
