"""Runtime configuration for the app (loaded from the environment, overridable in tests)."""
import logging
import os
from typing import NamedTuple, Optional


class Settings(NamedTuple):
    mongodb_url: str
    database_name: str
    jwt_secret: str
    token_ttl_seconds: int
    port: int
    allowed_origins: tuple
    admin_emails: frozenset
    log_level: str


def _split(value: Optional[str]) -> list:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _mongodb_url() -> str:
    url = os.getenv("MONGODB_URL")
    if url:
        return url
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASS")
    host = os.getenv("DB_HOST")
    # Atlas style credentials
    if user and password and host:
        return f"mongodb+srv://{user}:{password}@{host}/?retryWrites=true&w=majority"
    return "mongodb://localhost:27017"


def load_settings() -> Settings:
    origins = _split(os.getenv("ALLOWED_ORIGINS")) or ["http://localhost:5173"]
    return Settings(
        mongodb_url=_mongodb_url(),
        database_name=os.getenv("DATABASE_NAME", "SumonMoto"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", "3600")),
        port=int(os.getenv("PORT", "5000")),
        allowed_origins=tuple(origins),
        admin_emails=frozenset(e.lower() for e in _split(os.getenv("ADMIN_EMAILS"))),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


state = load_settings()


def set_settings(**overrides) -> Settings:
    global state
    state = state._replace(**overrides)
    return state


def get_settings() -> Settings:
    return state


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=level or state.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
