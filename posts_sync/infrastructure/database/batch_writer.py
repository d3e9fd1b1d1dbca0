"""
Motor de escritura por lotes.

Aplica un conjunto de ChangeIntents en chunks, una transacción por chunk:
- orden fijo Insert -> Update -> Delete, preservando el orden de llegada
  dentro de cada tipo;
- todas las sentencias usan parámetros ligados (sqlalchemy.text con :name);
- los nombres de columna salen de una whitelist fija, nunca del caller.

Si un chunk falla se revierte y se aborta el resto con WriteError; los
chunks ya confirmados permanecen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from posts_sync.domain.entities.change_intent import (
    ChangeIntent,
    DeleteIntent,
    InsertIntent,
    IntentType,
    UpdateIntent,
)
from posts_sync.domain.entities.post import POST_COLUMNS, PostRecord
from posts_sync.shared.constants.sync_constants import MAX_BATCH_SIZE
from posts_sync.shared.exceptions import ValidationError, WriteError

# id y created_at son inmutables una vez insertada la fila
UPDATABLE_COLUMNS = frozenset(c for c in POST_COLUMNS if c not in ("id", "created_at"))

_INSERT_SQL = (
    f"INSERT INTO posts ({', '.join(POST_COLUMNS)}) "
    f"VALUES ({', '.join(':' + c for c in POST_COLUMNS)})"
)
_DELETE_SQL = "DELETE FROM posts WHERE id = :id"


@dataclass
class WriteSummary:
    """Resultado de un `execute`: filas aplicadas y tamaño de cada chunk confirmado."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    transactions: Dict[str, List[int]] = field(
        default_factory=lambda: {t.value: [] for t in IntentType}
    )

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.deleted

    @property
    def transaction_count(self) -> int:
        return sum(len(sizes) for sizes in self.transactions.values())


def _chunks(items: Sequence[ChangeIntent], size: int) -> Iterable[Sequence[ChangeIntent]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _update_sql(columns: Sequence[str]) -> str:
    assignments = ", ".join(f"{c} = :{c}" for c in columns)
    return f"UPDATE posts SET {assignments} WHERE id = :post_id"


class BatchWriter:
    """
    Único camino de escritura hacia `posts`.

    Lo usan la reconciliación, el colector de tareas de imagen y el
    enriquecimiento.
    """

    def __init__(self, engine: AsyncEngine, *, max_batch_size: int = MAX_BATCH_SIZE) -> None:
        if not 0 < max_batch_size <= MAX_BATCH_SIZE:
            raise ValidationError(
                f"max_batch_size debe estar entre 1 y {MAX_BATCH_SIZE}",
                field="max_batch_size",
            )
        self._engine = engine
        self._max_batch_size = max_batch_size

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    def _validate(self, intents: Sequence[ChangeIntent], batch_size: int) -> None:
        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            raise ValidationError("batch_size debe ser un entero", field="batch_size")
        if not 0 < batch_size <= self._max_batch_size:
            raise ValidationError(
                f"batch_size={batch_size} fuera de rango (1..{self._max_batch_size})",
                field="batch_size",
            )

        for intent in intents:
            if isinstance(intent, InsertIntent):
                if not isinstance(intent.record, PostRecord):
                    raise ValidationError("InsertIntent requiere un PostRecord", field="record")
            elif isinstance(intent, UpdateIntent):
                if not intent.fields:
                    raise ValidationError(f"UpdateIntent vacío para id={intent.id}", field="fields")
                unknown = set(intent.fields) - UPDATABLE_COLUMNS
                if unknown:
                    raise ValidationError(
                        f"Campos no actualizables para id={intent.id}: {', '.join(sorted(unknown))}",
                        field=sorted(unknown)[0],
                    )
            elif not isinstance(intent, DeleteIntent):
                raise ValidationError(f"Intent desconocido: {type(intent).__name__}", field="intent")

    async def _apply_inserts(self, conn: AsyncConnection, chunk: Sequence[InsertIntent]) -> None:
        await conn.execute(text(_INSERT_SQL), [i.record.to_row() for i in chunk])

    async def _apply_updates(self, conn: AsyncConnection, chunk: Sequence[UpdateIntent]) -> None:
        for intent in chunk:
            columns = [c for c in POST_COLUMNS if c in intent.fields]
            params: Dict[str, Any] = {c: intent.fields[c] for c in columns}
            params["post_id"] = intent.id
            result = await conn.execute(text(_update_sql(columns)), params)
            if result.rowcount == 0:
                logger.warning(f"UPDATE sin filas afectadas para id={intent.id}")

    async def _apply_deletes(self, conn: AsyncConnection, chunk: Sequence[DeleteIntent]) -> None:
        await conn.execute(text(_DELETE_SQL), [{"id": i.id} for i in chunk])

    async def execute(self, intents: Sequence[ChangeIntent], batch_size: int) -> WriteSummary:
        """
        Aplica los intents en chunks de hasta `batch_size`.

        Raises:
            ValidationError: batch_size fuera de rango o intent mal formado
                (antes de abrir cualquier transacción)
            WriteError: un chunk falló; se revirtió y no se intentó ningún otro
        """
        intents = list(intents)
        self._validate(intents, batch_size)

        partitions = (
            (IntentType.INSERT, [i for i in intents if isinstance(i, InsertIntent)], self._apply_inserts),
            (IntentType.UPDATE, [i for i in intents if isinstance(i, UpdateIntent)], self._apply_updates),
            (IntentType.DELETE, [i for i in intents if isinstance(i, DeleteIntent)], self._apply_deletes),
        )

        summary = WriteSummary()
        for intent_type, items, apply in partitions:
            for index, chunk in enumerate(_chunks(items, batch_size)):
                try:
                    async with self._engine.begin() as conn:
                        await apply(conn, chunk)
                except SQLAlchemyError as e:
                    logger.error(
                        f"Chunk {intent_type.value} #{index} ({len(chunk)} filas) revertido: {e}"
                    )
                    raise WriteError(
                        f"Fallo al aplicar chunk {intent_type.value} #{index}: {e}",
                        intent_type=intent_type.value,
                        chunk_index=index,
                        cause=e,
                    ) from e

                summary.transactions[intent_type.value].append(len(chunk))
                if intent_type is IntentType.INSERT:
                    summary.inserted += len(chunk)
                elif intent_type is IntentType.UPDATE:
                    summary.updated += len(chunk)
                else:
                    summary.deleted += len(chunk)

        if summary.total:
            logger.info(
                f"BatchWriter: inserted={summary.inserted} updated={summary.updated} "
                f"deleted={summary.deleted} transacciones={summary.transaction_count}"
            )
        return summary
