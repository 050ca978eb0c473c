import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Config:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "storefront"
    jwt_secret: str = "dev-access-secret"
    jwt_refresh_secret: str = "dev-refresh-secret"
    jwt_expire_minutes: int = 60
    jwt_refresh_expire_days: int = 7
    default_currency: str = "USD"
    settings_cache_ttl: float = 60.0
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"
    port: int = 8000


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def load_config() -> Config:
    return Config(
        database_url=os.getenv("DATABASE_URL", Config.database_url),
        database_name=os.getenv("DATABASE_NAME", Config.database_name),
        jwt_secret=os.getenv("JWT_SECRET", Config.jwt_secret),
        jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", Config.jwt_refresh_secret),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", Config.jwt_expire_minutes)),
        jwt_refresh_expire_days=int(os.getenv("JWT_REFRESH_EXPIRE_DAYS", Config.jwt_refresh_expire_days)),
        default_currency=os.getenv("DEFAULT_CURRENCY", Config.default_currency).upper(),
        settings_cache_ttl=float(os.getenv("SETTINGS_CACHE_TTL", Config.settings_cache_ttl)),
        cors_origins=tuple(_split(os.getenv("CORS_ORIGINS", "*"))) or ("*",),
        log_level=os.getenv("LOG_LEVEL", Config.log_level).upper(),
        port=int(os.getenv("PORT", Config.port)),
    )


@lru_cache
def get_config() -> Config:
    return load_config()
