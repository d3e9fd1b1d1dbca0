"""
Entidad Post: la unidad persistida en la tabla `posts`.

Campos de metadata (no nulos) vienen del document store; los campos
extendidos (nulos) se completan de forma asíncrona por los workflows de
enriquecimiento y de recolección de imágenes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from posts_sync.shared.utils.datetime_utils import to_iso_z

METADATA_FIELDS = (
    "id",
    "title",
    "category",
    "author",
    "source_url",
    "source_last_modified",
    "created_at",
    "updated_at",
)

EXTENDED_FIELDS = (
    "excerpt",
    "summary",
    "reading_minutes",
    "tags",
    "image_url",
    "hosted_image_url",
    "image_task_id",
    "error",
)

# Campos que el enriquecimiento completa cuando están en null
ENRICHABLE_FIELDS = ("excerpt", "summary", "reading_minutes", "tags", "image_url")

POST_COLUMNS = METADATA_FIELDS + EXTENDED_FIELDS


@dataclass(frozen=True)
class PostRecord:
    """Fila de `posts`. Todos los campos son escalares o None."""

    id: str
    title: str
    category: str
    author: str
    source_url: str
    source_last_modified: str
    created_at: str
    updated_at: str
    excerpt: Optional[str] = None
    summary: Optional[str] = None
    reading_minutes: Optional[int] = None
    tags: Optional[str] = None
    image_url: Optional[str] = None
    hosted_image_url: Optional[str] = None
    image_task_id: Optional[str] = None
    error: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PostRecord":
        """Construye un PostRecord desde una fila (ignora columnas extra)."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: row[k] for k in names if k in row})


def stamp_insert(record: PostRecord, now: datetime) -> PostRecord:
    """Fija created_at y updated_at para una inserción."""
    ts = to_iso_z(now)
    return replace(record, created_at=ts, updated_at=ts)


def stamp_update(changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Agrega updated_at a un diff parcial."""
    stamped = dict(changes)
    stamped["updated_at"] = to_iso_z(now)
    return stamped
