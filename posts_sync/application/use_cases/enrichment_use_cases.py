"""
Enriquecimiento de posts con campos generados.

Toma hasta `limit` posts con algún campo enriquecible en null y completa
solo esos campos: excerpt, summary, tags, reading_minutes, y crea una
tarea de imagen si no hay imagen ni tarea en curso. La imagen la recoge
después el colector de tareas.

Los posts se toman por `updated_at` ascendente. Un post que no pudo
enriquecerse (contenido ilegible o vacío, ningún campo generado) recibe
un `updated_at` nuevo para no bloquear la cola en la siguiente ejecución.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional

from loguru import logger

from posts_sync.application.dto.sync_dto import EnrichmentResultDTO
from posts_sync.application.services.document_mapper import generate_excerpt
from posts_sync.domain.entities.change_intent import UpdateIntent
from posts_sync.domain.entities.post import PostRecord, stamp_update
from posts_sync.infrastructure.database.batch_writer import BatchWriter
from posts_sync.infrastructure.external.ai import prompts
from posts_sync.infrastructure.external.ai.image_generator import DashScopeImageGenerator
from posts_sync.infrastructure.external.ai.text_generator import TextGenerator
from posts_sync.infrastructure.external.notion.notion_client import NotionClient
from posts_sync.infrastructure.repositories.post_repository import PostRepository
from posts_sync.shared.constants.sync_constants import DEFAULT_ENRICHMENT_LIMIT
from posts_sync.shared.exceptions import AppException, ValidationError, handle_error
from posts_sync.shared.utils.datetime_utils import Clock, utc_now

# El modelo subestima el tiempo de lectura de contenido técnico
READING_TIME_FACTOR = 3

_INT_RE = re.compile(r"-?\d+")


def normalize_tags(raw: str, max_keywords: int = prompts.DEFAULT_MAX_KEYWORDS) -> Optional[str]:
    """'a,b ,  c' -> 'a, b, c' (sin vacíos ni duplicados, máximo `max_keywords`)."""
    tags: List[str] = []
    for part in raw.replace("\n", ",").split(","):
        tag = part.strip().strip(".").strip()
        if tag and tag.lower() not in (t.lower() for t in tags):
            tags.append(tag)
    return ", ".join(tags[:max_keywords]) or None


def parse_reading_minutes(raw: str) -> int:
    """
    Minutos de lectura a partir de la respuesta del modelo.

    Raises:
        ValidationError: la respuesta no contiene un entero positivo
    """
    match = _INT_RE.search(raw)
    if not match:
        raise ValidationError(f"Tiempo de lectura no numérico: {raw!r}", field="reading_minutes")
    minutes = int(match.group())
    if minutes <= 0:
        raise ValidationError("El tiempo de lectura debe ser mayor que 0", field="reading_minutes")
    return math.ceil(minutes * READING_TIME_FACTOR)


class EnrichmentUseCases:
    def __init__(
        self,
        repository: PostRepository,
        document_store: NotionClient,
        text_generator: TextGenerator,
        image_provider: DashScopeImageGenerator,
        writer: BatchWriter,
        *,
        limit: int = DEFAULT_ENRICHMENT_LIMIT,
        clock: Clock = utc_now,
    ) -> None:
        if limit <= 0:
            raise ValidationError("limit debe ser mayor que 0", field="limit")
        self._repo = repository
        self._store = document_store
        self._text = text_generator
        self._images = image_provider
        self._writer = writer
        self._limit = limit
        self._clock = clock

    async def _generate_fields(self, post: PostRecord, content: str) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}

        if post.excerpt is None:
            excerpt = generate_excerpt(content)
            if excerpt:
                updates["excerpt"] = excerpt

        if post.summary is None:
            try:
                updates["summary"] = (await self._text.generate(prompts.summary_prompt(content))).text
            except AppException as e:
                logger.warning(f"Post {post.id}: no se pudo generar summary: {e.message}")

        if post.tags is None:
            try:
                generated = await self._text.generate(prompts.tags_prompt(content))
                tags = normalize_tags(generated.text)
                if tags:
                    updates["tags"] = tags
            except AppException as e:
                logger.warning(f"Post {post.id}: no se pudieron generar tags: {e.message}")

        if post.reading_minutes is None:
            try:
                generated = await self._text.generate(prompts.reading_time_prompt(content))
                updates["reading_minutes"] = parse_reading_minutes(generated.text)
            except AppException as e:
                logger.warning(f"Post {post.id}: no se pudo estimar tiempo de lectura: {e.message}")

        if post.image_url is None and post.image_task_id is None:
            creation = await self._images.create_task(post.title)
            if creation.ok:
                updates["image_task_id"] = creation.task_id
            else:
                logger.warning(f"Post {post.id}: no se pudo crear tarea de imagen: {creation.error}")

        return updates

    async def _defer(self, post: PostRecord) -> None:
        """Renueva updated_at para que el post pase al final de la cola."""
        intent = UpdateIntent(id=post.id, fields=stamp_update({}, self._clock()))
        await self._writer.execute([intent], batch_size=1)

    async def enrich(self) -> EnrichmentResultDTO:
        logger.info(f"Iniciando enriquecimiento (límite {self._limit})")
        errors: List[str] = []
        updated = tasks_created = 0

        try:
            posts = await self._repo.get_missing_extended(self._limit)
            if not posts:
                logger.info("No hay posts con campos pendientes de enriquecer")
                return EnrichmentResultDTO(success=True)

            for post in posts:
                try:
                    content = await self._store.fetch_page_text(post.id)
                except AppException as e:
                    errors.append(f"{post.id}: {e.message}")
                    logger.warning(f"Post {post.id}: no se pudo leer el contenido: {e.message}")
                    await self._defer(post)
                    continue

                if not content.strip():
                    errors.append(f"{post.id}: contenido vacío")
                    logger.warning(f"Post {post.id}: contenido vacío, se omite")
                    await self._defer(post)
                    continue

                updates = await self._generate_fields(post, content)
                if not updates:
                    logger.warning(f"Post {post.id}: no se generó ningún campo")
                    await self._defer(post)
                    continue

                intent = UpdateIntent(id=post.id, fields=stamp_update(updates, self._clock()))
                await self._writer.execute([intent], batch_size=1)
                updated += 1
                if "image_task_id" in updates:
                    tasks_created += 1
                logger.info(f"Post {post.id}: campos completados {sorted(updates)}")
        except Exception as e:
            err = handle_error(e)
            logger.error(f"Enriquecimiento abortado: {err.message}")
            return EnrichmentResultDTO(
                success=False,
                updated=updated,
                tasks_created=tasks_created,
                errors=errors,
                error=err.message,
            )

        logger.success(f"Enriquecimiento completo: {updated}/{len(posts)} posts actualizados")
        return EnrichmentResultDTO(
            success=True,
            processed=len(posts),
            updated=updated,
            tasks_created=tasks_created,
            errors=errors,
        )
