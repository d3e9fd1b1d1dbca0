"""
Creacion del engine de base de datos.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from posts_sync.core.config import Settings


def normalize_database_url(url: str) -> str:
    """
    Normaliza la URL al driver asincrono soportado.

    - postgres:// y postgresql:// -> postgresql+psycopg://
    - postgresql+asyncpg:// -> postgresql+psycopg://
    - sqlite:// -> sqlite+aiosqlite://
    """
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql+psycopg://" + url[len("postgresql+asyncpg://"):]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://"):]
    return url


def _create_engine_args(settings: Settings, url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    if url.startswith("postgresql"):
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,
        })

    return args


def create_engine(settings: Settings) -> AsyncEngine:
    """Crea el AsyncEngine a partir de la configuracion."""
    url = normalize_database_url(settings.DATABASE_URL)
    return create_async_engine(url, **_create_engine_args(settings, url))
