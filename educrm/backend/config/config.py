import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Settings read straight from environment variables (and a local .env file).
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", 5))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", 20))

    # Redis
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL", "redis://localhost:6379/0")
    RATE_LIMITER_STORAGE_URI: str = os.environ.get("RATE_LIMITER_STORAGE_URI", "memory://")
    RATE_LIMIT_ENABLED: bool = _as_bool(os.environ.get("RATE_LIMIT_ENABLED", "true"))

    # Tokens issued by the hosted auth provider
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    JWT_AUDIENCE: str = os.environ.get("JWT_AUDIENCE", "authenticated")
    PROFILE_CACHE_TTL_SECONDS: int = int(os.environ.get("PROFILE_CACHE_TTL_SECONDS", 300))

    # Tenancy
    ROOT_DOMAIN: str = os.environ.get("ROOT_DOMAIN", "educrm.app")
    DEFAULT_TENANT_SLUG: str = os.environ.get("DEFAULT_TENANT_SLUG", "demo-school")
    TENANT_CACHE_TTL_SECONDS: int = int(os.environ.get("TENANT_CACHE_TTL_SECONDS", 600))

    # HTTP
    CORS_ORIGINS: list = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_TO_FILE: bool = _as_bool(os.environ.get("LOG_TO_FILE", "true"))


settings = Config()
