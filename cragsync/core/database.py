import ssl
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cragsync.config import get_settings

settings = get_settings()

LOCAL_HOSTS = ("localhost", "127.0.0.1", "db")


def clean_database_url(url: str) -> tuple[str, dict]:
    """
    Clean a Postgres connection URL for asyncpg compatibility.

    Hosted Postgres providers add params like sslmode and channel_binding
    that asyncpg doesn't accept. We strip them and handle SSL via connect_args.

    - Remote hosts: SSL with default context
    - Local dev (localhost/127.0.0.1/db) and SQLite: no SSL
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)

    # Remove unsupported asyncpg params
    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    if hostname in LOCAL_HOSTS:
        return clean_url, {}

    ssl_context = ssl.create_default_context()
    return clean_url, {"ssl": ssl_context}


def engine_options(url: str, echo: bool = False) -> dict[str, Any]:
    """Keyword arguments for create_async_engine.

    Postgres gets a bounded, recycled pool; SQLite (local runs and tests)
    uses SQLAlchemy's default pool, which rejects sizing arguments.
    """
    clean_url, connect_args = clean_database_url(url)
    options: dict[str, Any] = {"url": clean_url, "echo": echo, "connect_args": connect_args}
    if clean_url.startswith("sqlite"):
        return options
    return {
        **options,
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 280,
    }


def create_session_factory(url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Engine plus session factory with the settings every job relies on.

    Objects stay usable after commit (jobs return rows after their session
    closes) and nothing is flushed implicitly.
    """
    engine = create_async_engine(**engine_options(url, echo))
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


AsyncSessionLocal = create_session_factory(settings.database_url, echo=settings.debug)
