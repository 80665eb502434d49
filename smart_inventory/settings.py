from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore'
    )

    DATABASE_URL: str = 'sqlite:///./inventory.db'

    # Remote data service (PostgREST style). Local SQL is used when unset.
    DATA_SERVICE_URL: str | None = None
    DATA_SERVICE_KEY: str = ''
    DATA_SERVICE_TIMEOUT: float = 10.0

    SECRET_KEY: str = 'change-this-secret-key'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    LOG_LEVEL: str = 'INFO'
    CORS_ORIGINS: list[str] = ['*']
