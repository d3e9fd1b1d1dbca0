"""
Colector de tareas de generación de imagen.

Por invocación consulta una sola vez cada tarea pendiente (posts con
`image_task_id` no nulo) y transiciona el post según el estado:
- SUCCEEDED: guarda image_url (y hosted_image_url si hay blob storage) y
  limpia la tarea y cualquier error previo.
- FAILED o excepción: guarda el error y limpia la tarea; image_url no se toca.
- PENDING: no escribe nada; se reintenta en la próxima invocación.

Un error al procesar un post (consulta, subida o escritura) cuenta como
fallo de ese post y no detiene la recolección de los demás. Nunca espera
a que una tarea termine.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from loguru import logger

from posts_sync.application.dto.sync_dto import CollectResultDTO
from posts_sync.domain.entities.change_intent import UpdateIntent
from posts_sync.domain.entities.image_task import ImageTaskState
from posts_sync.domain.entities.post import PostRecord, stamp_update
from posts_sync.infrastructure.database.batch_writer import BatchWriter
from posts_sync.infrastructure.external.ai.image_generator import DashScopeImageGenerator
from posts_sync.infrastructure.external.storage.blob_storage import (
    R2BlobStorage,
    guess_extension_from_url,
)
from posts_sync.infrastructure.repositories.post_repository import PostRepository
from posts_sync.shared.constants.sync_constants import BLOB_KEY_PREFIX, MAX_CONCURRENT_TASKS
from posts_sync.shared.exceptions import ValidationError, handle_error
from posts_sync.shared.utils.datetime_utils import Clock, utc_now


def blob_key_for(post_id: str, image_url: str) -> str:
    return f"{BLOB_KEY_PREFIX}/{post_id}.{guess_extension_from_url(image_url)}"


class TaskLifecycleManager:
    def __init__(
        self,
        repository: PostRepository,
        image_provider: DashScopeImageGenerator,
        writer: BatchWriter,
        *,
        blob_storage: Optional[R2BlobStorage] = None,
        max_tasks: int = MAX_CONCURRENT_TASKS,
        clock: Clock = utc_now,
    ) -> None:
        if max_tasks <= 0:
            raise ValidationError("max_tasks debe ser mayor que 0", field="max_tasks")
        self._repo = repository
        self._provider = image_provider
        self._writer = writer
        self._blob_storage = blob_storage
        self._max_tasks = max_tasks
        self._clock = clock

    async def _write(self, post_id: str, changes: Dict[str, Any]) -> None:
        intent = UpdateIntent(id=post_id, fields=stamp_update(changes, self._clock()))
        await self._writer.execute([intent], batch_size=1)

    async def _hosted_url(self, post: PostRecord, image_url: str) -> Optional[str]:
        if self._blob_storage is None:
            return None
        result = await self._blob_storage.upload(image_url, blob_key_for(post.id, image_url))
        if not result.success:
            logger.warning(f"Post {post.id}: imagen no copiada al blob storage ({result.error})")
            return None
        return result.url

    async def _process(self, post: PostRecord) -> Tuple[ImageTaskState, bool]:
        """
        Consulta la tarea de `post` y aplica la transición correspondiente.

        Retorna (estado, imagen copiada al blob storage).
        """
        task_id = post.image_task_id
        status = await self._provider.check_status(task_id)

        if status.state is ImageTaskState.SUCCEEDED and status.image_url:
            hosted = await self._hosted_url(post, status.image_url)
            await self._write(post.id, {
                "image_url": status.image_url,
                "hosted_image_url": hosted,
                "image_task_id": None,
                "error": None,
            })
            logger.info(f"Post {post.id}: imagen recolectada ({status.image_url})")
            return ImageTaskState.SUCCEEDED, hosted is not None

        if not status.state.is_terminal:
            logger.debug(f"Post {post.id}: tarea {task_id} aún pendiente")
            return ImageTaskState.PENDING, False

        message = status.error or "Tarea de imagen fallida"
        await self._write(post.id, {"image_task_id": None, "error": message})
        logger.warning(f"Post {post.id}: tarea {task_id} fallida: {message}")
        return ImageTaskState.FAILED, False

    async def _record_failure(self, post: PostRecord, message: str) -> None:
        try:
            await self._write(post.id, {"image_task_id": None, "error": message})
        except Exception as e:
            err = handle_error(e)
            logger.error(f"Post {post.id}: no se pudo registrar el fallo: {err.message}")

    async def collect(self) -> CollectResultDTO:
        logger.info("Iniciando recolección de tareas de imagen")
        completed = failed = pending = uploaded = 0

        try:
            posts = await self._repo.get_with_pending_tasks()
            if len(posts) > self._max_tasks:
                raise ValidationError(
                    f"Demasiadas tareas pendientes ({len(posts)}). Máximo permitido: {self._max_tasks}",
                    field="max_tasks",
                )
        except Exception as e:
            err = handle_error(e)
            logger.error(f"Recolección de imágenes abortada: {err.message}")
            return CollectResultDTO(success=False, error=err.message)

        if not posts:
            logger.info("No hay tareas de imagen pendientes")
            return CollectResultDTO(success=True)

        for post in posts:
            try:
                state, hosted = await self._process(post)
            except Exception as e:
                err = handle_error(e)
                failed += 1
                logger.error(f"Post {post.id}: error procesando tarea {post.image_task_id}: {err.message}")
                await self._record_failure(post, err.message)
                continue

            uploaded += int(hosted)
            if state is ImageTaskState.SUCCEEDED:
                completed += 1
            elif state is ImageTaskState.PENDING:
                pending += 1
            else:
                failed += 1

        logger.success(
            f"Recolección completa: {len(posts)} tareas, {completed} completadas, "
            f"{failed} fallidas, {pending} pendientes"
        )
        return CollectResultDTO(
            success=True,
            processed=len(posts),
            completed=completed,
            failed=failed,
            pending=pending,
            uploaded=uploaded,
        )
