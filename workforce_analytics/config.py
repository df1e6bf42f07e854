# App configuration using Pydantic BaseSettings (loads from .env or defaults).

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./workforce_analytics.sqlite"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    AUTO_CREATE_SCHEMA: bool = False

    SUPER_ADMIN_ROLE: str = "Super Admin"
    REPEAT_JOB_WINDOW_DAYS: int = 30

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
