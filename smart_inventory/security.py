from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jwt import DecodeError, ExpiredSignatureError, decode, encode
from pwdlib import PasswordHash

from .exceptions import RecordNotFound
from .schemas import UserRecord
from .settings import Settings
from .store import StoreData, get_store

settings = Settings()
pwd_context = PasswordHash.recommended()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl='auth/token')


def get_password_hash(password: str):
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str):
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({'exp': expire})
    return encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def authenticate(
    store: StoreData, email: str, password: str
) -> UserRecord | None:
    user = await store.data.get_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


async def get_current_user(
    store: Annotated[StoreData, Depends(get_store)],
    token: str = Depends(oauth2_scheme),
) -> UserRecord:
    credentials_exception = HTTPException(
        status_code=HTTPStatus.UNAUTHORIZED,
        detail='Could not validate credentials',
        headers={'WWW-Authenticate': 'Bearer'},
    )
    try:
        payload = decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id = payload.get('sub')
        if not user_id:
            raise credentials_exception
    except (DecodeError, ExpiredSignatureError):
        raise credentials_exception

    try:
        return await store.data.users.get(user_id)
    except RecordNotFound:
        raise credentials_exception


T_CurrentUser = Annotated[UserRecord, Depends(get_current_user)]


def require_role(role: str):
    def checker(current_user: T_CurrentUser) -> UserRecord:
        if current_user.role != role:
            raise HTTPException(
                status_code=HTTPStatus.FORBIDDEN,
                detail='You do not have permission to view this page.',
            )
        return current_user

    return checker


T_Admin = Annotated[UserRecord, Depends(require_role('admin'))]
T_Cashier = Annotated[UserRecord, Depends(require_role('cashier'))]
