"""
Diff mínimo entre un post remoto (ya mapeado) y el persistido.

Compara solo los campos de la whitelist, con igualdad estricta. `id`,
`created_at` y `updated_at` nunca se comparan: son propiedad del writer.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Mapping

from posts_sync.domain.entities.post import PostRecord

COMPARABLE_FIELDS = (
    "title",
    "category",
    "author",
    "source_url",
    "source_last_modified",
    "excerpt",
    "summary",
    "reading_minutes",
    "tags",
    "image_url",
    "hosted_image_url",
    "image_task_id",
    "error",
)


def diff_post(remote: PostRecord, stored: PostRecord) -> Dict[str, Any]:
    """
    Campos de `remote` que difieren de `stored`.

    Un dict vacío significa "sin cambios, omitir".
    """
    changes: Dict[str, Any] = {}
    for name in COMPARABLE_FIELDS:
        new_value = getattr(remote, name)
        if new_value != getattr(stored, name):
            changes[name] = new_value
    return changes


def apply_changes(stored: PostRecord, changes: Mapping[str, Any]) -> PostRecord:
    """Retorna una copia de `stored` con `changes` aplicados."""
    return replace(stored, **dict(changes))
