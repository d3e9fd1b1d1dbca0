"""
Reconciliación Notion -> `posts`.

Una pasada:
1. Lee {id: source_last_modified} de lo persistido (barato, sin filas completas).
2. Recorre la jerarquía de páginas desde la raíz (BFS con cola FIFO y set
   de visitados) y obtiene cada página hija.
3. Filtra documentos de contenido válidos.
4. Se queda con los nuevos o los que avanzaron su `source_last_modified`, y
   los mapea (con reset de campos extendidos).
5. Parte en inserts (id desconocido) y candidatos a update (id conocido).
6. Para los candidatos lee las filas completas y calcula el diff.
7. Envía Insert/Update intents al BatchWriter.

No borra por defecto: un documento que desaparece del recorrido queda en
la tabla. `prune_missing=True` habilita el borrado, solo tras un recorrido
completo.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Set, Tuple

from loguru import logger

from posts_sync.application.dto.sync_dto import ReconcileResultDTO, SyncStatsDTO
from posts_sync.application.services.document_mapper import (
    is_valid_content_document,
    map_document_to_post,
)
from posts_sync.application.services.post_diff import diff_post
from posts_sync.domain.entities.change_intent import (
    ChangeIntent,
    DeleteIntent,
    InsertIntent,
    UpdateIntent,
)
from posts_sync.domain.entities.post import PostRecord, stamp_insert, stamp_update
from posts_sync.infrastructure.database.batch_writer import BatchWriter, WriteSummary
from posts_sync.infrastructure.external.notion.notion_client import DocumentPayload, NotionClient
from posts_sync.infrastructure.repositories.post_repository import PostRepository
from posts_sync.shared.constants.sync_constants import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from posts_sync.shared.exceptions import AppException, ValidationError, handle_error
from posts_sync.shared.utils.datetime_utils import Clock, is_later, utc_now


class ReconciliationEngine:
    """Orquestador de una pasada de sync."""

    def __init__(
        self,
        document_store: NotionClient,
        repository: PostRepository,
        writer: BatchWriter,
        *,
        root_page_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Clock = utc_now,
    ) -> None:
        if not root_page_id:
            raise ValidationError("root_page_id es requerido", field="root_page_id")
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValidationError(
                f"batch_size={batch_size} fuera de rango (1..{MAX_BATCH_SIZE})",
                field="batch_size",
            )
        self._store = document_store
        self._repo = repository
        self._writer = writer
        self._root_page_id = root_page_id
        self._batch_size = batch_size
        self._clock = clock

    async def _traverse(self, errors: List[str]) -> Tuple[List[DocumentPayload], bool]:
        """
        Recorre el árbol desde la raíz.

        Retorna (documentos, completo). `completo` es False si alguna página
        no pudo leerse; el error de la raíz aborta la pasada.
        """
        queue: Deque[str] = deque([self._root_page_id])
        visited: Set[str] = {self._root_page_id}
        documents: List[DocumentPayload] = []
        complete = True

        while queue:
            page_id = queue.popleft()
            try:
                child_ids = [cid async for cid in self._store.iter_child_page_ids(page_id)]
            except AppException as e:
                if page_id == self._root_page_id:
                    raise
                complete = False
                errors.append(f"{page_id}: {e.message}")
                logger.warning(f"No se pudieron listar hijos de {page_id}: {e.message}")
                continue

            for child_id in child_ids:
                if child_id in visited:
                    continue
                visited.add(child_id)
                queue.append(child_id)
                try:
                    documents.append(await self._store.retrieve_document(child_id))
                except AppException as e:
                    complete = False
                    errors.append(f"{child_id}: {e.message}")
                    logger.warning(f"No se pudo leer la página {child_id}: {e.message}")

        logger.info(f"Recorrido: {len(visited)} páginas visitadas, {len(documents)} documentos leídos")
        return documents, complete

    async def reconcile(self, prune_missing: bool = False) -> ReconcileResultDTO:
        logger.info(f"Iniciando reconciliación desde {self._root_page_id} (prune_missing={prune_missing})")
        errors: List[str] = []
        skipped = 0

        try:
            before = await self._repo.count()
            known: Dict[str, str] = await self._repo.get_timestamps()

            documents, complete = await self._traverse(errors)
            now = self._clock()

            inserts: List[PostRecord] = []
            candidates: List[PostRecord] = []
            for doc in documents:
                if doc.archived or not is_valid_content_document(doc):
                    skipped += 1
                    logger.debug(f"Documento {doc.id} no es contenido válido, se omite")
                    continue

                if doc.id in known and not is_later(doc.last_edited_time, known[doc.id]):
                    skipped += 1
                    continue

                try:
                    record = map_document_to_post(doc, now)
                except ValidationError as e:
                    errors.append(f"{doc.id}: {e.message}")
                    logger.warning(f"Documento {doc.id} omitido: {e.message}")
                    continue

                if doc.id in known:
                    candidates.append(record)
                else:
                    inserts.append(record)

            stored = await self._repo.get_by_ids(r.id for r in candidates)

            intents: List[ChangeIntent] = [InsertIntent(stamp_insert(r, now)) for r in inserts]
            for record in candidates:
                current = stored.get(record.id)
                if current is None:
                    # borrado entre la lectura de timestamps y la de filas
                    intents.append(InsertIntent(stamp_insert(record, now)))
                    continue
                changes = diff_post(record, current)
                if not changes:
                    skipped += 1
                    continue
                intents.append(UpdateIntent(id=record.id, fields=stamp_update(changes, now)))

            if prune_missing:
                if complete:
                    seen = {doc.id for doc in documents}
                    missing = sorted(set(known) - seen)
                    intents.extend(DeleteIntent(id=post_id) for post_id in missing)
                    if missing:
                        logger.warning(f"Se eliminarán {len(missing)} posts ausentes en Notion")
                else:
                    logger.warning("Recorrido incompleto: no se eliminan posts ausentes")

            summary = (
                await self._writer.execute(intents, self._batch_size) if intents else WriteSummary()
            )
            after = await self._repo.count()
        except Exception as e:
            err = handle_error(e)
            logger.error(f"Reconciliación abortada: {err.message}")
            return ReconcileResultDTO(success=False, skipped=skipped, errors=errors, error=err.message)

        result = ReconcileResultDTO(
            success=True,
            processed=summary.total,
            inserted=summary.inserted,
            updated=summary.updated,
            deleted=summary.deleted,
            skipped=skipped,
            errors=errors,
            stats=SyncStatsDTO(before=before, after=after),
        )
        logger.success(
            f"Reconciliación completa: {result.inserted} nuevos, {result.updated} actualizados, "
            f"{result.deleted} eliminados, {result.skipped} omitidos, {len(errors)} errores"
        )
        return result
