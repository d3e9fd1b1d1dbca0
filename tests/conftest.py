"""
Configuración de fixtures para pytest.
"""
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from posts_sync.domain.entities.post import PostRecord
from posts_sync.infrastructure.database.batch_writer import BatchWriter
from posts_sync.infrastructure.database.schema import init_db
from posts_sync.infrastructure.external.notion.notion_client import DocumentPayload
from posts_sync.infrastructure.repositories.post_repository import PostRepository


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Engine en memoria con la tabla `posts` creada.
    StaticPool comparte una única conexión para que la base no desaparezca.
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def repository(engine: AsyncEngine) -> PostRepository:
    return PostRepository(engine)


@pytest.fixture
def writer(engine: AsyncEngine) -> BatchWriter:
    return BatchWriter(engine)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_post():
    """Factory de PostRecord con metadata completa."""

    def _make(post_id: str = "p1", **overrides: Any) -> PostRecord:
        data: Dict[str, Any] = {
            "id": post_id,
            "title": f"Post {post_id}",
            "category": "Backend",
            "author": "Ana",
            "source_url": f"https://notion.so/{post_id}",
            "source_last_modified": "2025-01-01T00:00:00.000Z",
            "created_at": "2025-01-01T00:00:00.000Z",
            "updated_at": "2025-01-01T00:00:00.000Z",
        }
        data.update(overrides)
        return PostRecord(**data)

    return _make


def _rich(text: Optional[str]) -> List[Dict[str, Any]]:
    return [{"plain_text": text}] if text else []


@pytest.fixture
def make_document():
    """
    Factory de DocumentPayload con la forma de la API de Notion.
    Por defecto produce un documento de contenido válido.
    """

    def _make(
        doc_id: str = "p1",
        *,
        title: Optional[str] = "Título",
        category: Optional[str] = "Backend",
        author: Optional[str] = "Ana",
        content_key: Optional[str] = "posts/p1.md",
        excerpt: Optional[str] = None,
        parents: Optional[List[str]] = None,
        children: Optional[List[str]] = None,
        last_edited_time: str = "2025-01-01T00:00:00.000Z",
        extra_properties: Optional[Dict[str, Any]] = None,
        archived: bool = False,
    ) -> DocumentPayload:
        properties: Dict[str, Any] = {
            "Title": {"type": "title", "title": _rich(title)},
            "Category": {"type": "select", "select": {"name": category} if category else None},
            "Author": {"type": "people", "people": [{"name": author}] if author else []},
            "Content Key": {"type": "rich_text", "rich_text": _rich(content_key)},
            "Excerpt": {"type": "rich_text", "rich_text": _rich(excerpt)},
            "Parent": {"type": "relation", "relation": [{"id": p} for p in (parents if parents is not None else ["root"])]},
            "Child Pages": {"type": "relation", "relation": [{"id": c} for c in (children or [])]},
        }
        properties.update(extra_properties or {})
        return DocumentPayload.from_api({
            "id": doc_id,
            "created_time": "2024-12-01T00:00:00.000Z",
            "last_edited_time": last_edited_time,
            "url": f"https://notion.so/{doc_id}",
            "archived": archived,
            "properties": properties,
        })

    return _make
