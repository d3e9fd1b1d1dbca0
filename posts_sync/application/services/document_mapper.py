"""
Mapeo Notion -> PostRecord.

Dos pasos separados:
- `is_valid_content_document`: filtro tolerante. Decide si una página es un
  post (y no una carpeta/categoría). Un tipo inesperado cuenta como vacío.
- `map_document_to_post`: extracción estricta. Cualquier propiedad requerida
  ausente o con tipo incorrecto lanza ValidationError para ese documento.
"""

from __future__ import annotations

import re
from datetime import datetime

from posts_sync.domain.entities.post import PostRecord
from posts_sync.infrastructure.external.notion.notion_client import DocumentPayload
from posts_sync.shared.constants.sync_constants import DocumentProperty
from posts_sync.shared.exceptions import ValidationError
from posts_sync.shared.utils.datetime_utils import normalize_iso, to_iso_z

EXCERPT_MAX_LENGTH = 200

_WHITESPACE_RE = re.compile(r"\s+")


def is_valid_content_document(document: DocumentPayload) -> bool:
    """
    True si la página es un post sincronizable.

    Requiere título, (Content Key o Excerpt) y al menos un Parent. Cualquier
    entrada en Child Pages la marca como nodo de carpeta.
    """
    props = document.properties
    if not props.has_text(DocumentProperty.TITLE.value):
        return False
    if not (
        props.has_text(DocumentProperty.CONTENT_KEY.value)
        or props.has_text(DocumentProperty.EXCERPT.value)
    ):
        return False
    if props.relation_count(DocumentProperty.PARENT.value) < 1:
        return False
    if props.relation_count(DocumentProperty.CHILD_PAGES.value) > 0:
        return False
    return True


def map_document_to_post(document: DocumentPayload, now: datetime) -> PostRecord:
    """
    Construye el PostRecord de una página válida.

    Los campos extendidos quedan en None salvo el excerpt propio del
    documento. `created_at`/`updated_at` se fijan a `now`; el writer los
    vuelve a estampar según el tipo de intent.

    Raises:
        ValidationError: propiedad requerida ausente, vacía o de otro tipo
    """
    if not document.id:
        raise ValidationError("Documento sin id", field="id")

    props = document.properties
    title = props.get_title(DocumentProperty.TITLE.value)
    category = props.get_select(DocumentProperty.CATEGORY.value)
    author = props.get_people(DocumentProperty.AUTHOR.value)
    excerpt = props.get_rich_text(DocumentProperty.EXCERPT.value, optional=True)

    if not document.url:
        raise ValidationError(f"Documento {document.id} sin url", field="source_url")
    try:
        last_modified = normalize_iso(document.last_edited_time)
    except ValueError as e:
        raise ValidationError(
            f"last_edited_time inválido en {document.id}: {document.last_edited_time!r}",
            field="source_last_modified",
            cause=e,
        ) from e

    ts = to_iso_z(now)
    return PostRecord(
        id=document.id,
        title=title,
        category=category,
        author=author,
        source_url=document.url,
        source_last_modified=last_modified,
        created_at=ts,
        updated_at=ts,
        excerpt=excerpt,
    )


def generate_excerpt(content: str, max_length: int = EXCERPT_MAX_LENGTH) -> str:
    """
    Extracto de hasta `max_length` caracteres.

    Corta en el último punto si está pasada la mitad del límite; si no, en
    el último espacio agregando "...".
    """
    if not content:
        return ""

    clean = _WHITESPACE_RE.sub(" ", content).strip()
    if len(clean) <= max_length:
        return clean

    head = clean[:max_length]
    sentence_break = head.rfind(".")
    if sentence_break != -1 and sentence_break > max_length / 2:
        return clean[:sentence_break + 1]

    word_break = head.rfind(" ")
    if word_break != -1:
        return clean[:word_break] + "..."

    return head + "..."
