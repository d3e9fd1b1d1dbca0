"""
Repositorio de lectura para `posts`.

Solo lee: toda escritura pasa por el BatchWriter.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine

from posts_sync.domain.entities.post import ENRICHABLE_FIELDS, POST_COLUMNS, PostRecord

_SELECT_COLUMNS = ", ".join(POST_COLUMNS)

# Límite de parámetros por IN (...) para no superar el máximo del driver
_IN_CLAUSE_CHUNK = 500


class PostRepository:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_timestamps(self) -> Dict[str, str]:
        """Retorna {id: source_last_modified} de todas las filas."""
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT id, source_last_modified FROM posts"))
            return {row.id: row.source_last_modified for row in result}

    async def count(self) -> int:
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT COUNT(*) FROM posts"))
            return int(result.scalar_one())

    async def get_by_id(self, post_id: str) -> Optional[PostRecord]:
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(f"SELECT {_SELECT_COLUMNS} FROM posts WHERE id = :id"),
                {"id": post_id},
            )
            row = result.mappings().first()
            return PostRecord.from_row(row) if row else None

    async def get_by_ids(self, ids: Iterable[str]) -> Dict[str, PostRecord]:
        """Retorna {id: PostRecord} para los ids existentes (los ausentes se omiten)."""
        id_list = list(dict.fromkeys(ids))
        records: Dict[str, PostRecord] = {}
        if not id_list:
            return records

        stmt = text(f"SELECT {_SELECT_COLUMNS} FROM posts WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        async with self._engine.connect() as conn:
            for start in range(0, len(id_list), _IN_CLAUSE_CHUNK):
                result = await conn.execute(stmt, {"ids": id_list[start:start + _IN_CLAUSE_CHUNK]})
                for row in result.mappings():
                    records[row["id"]] = PostRecord.from_row(row)
        return records

    async def get_with_pending_tasks(self) -> List[PostRecord]:
        """Posts con una tarea de imagen pendiente (image_task_id no nulo)."""
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(
                    f"SELECT {_SELECT_COLUMNS} FROM posts "
                    "WHERE image_task_id IS NOT NULL ORDER BY updated_at, id"
                )
            )
            return [PostRecord.from_row(row) for row in result.mappings()]

    async def get_missing_extended(self, limit: int) -> List[PostRecord]:
        """
        Posts con al menos un campo enriquecible en null.

        Excluye los que tienen una tarea de imagen en curso y solo les
        falta la imagen, para no generar tareas duplicadas.
        """
        text_fields = [f for f in ENRICHABLE_FIELDS if f != "image_url"]
        missing_text = " OR ".join(f"{f} IS NULL" for f in text_fields)
        where = f"({missing_text}) OR (image_url IS NULL AND image_task_id IS NULL)"
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(
                    f"SELECT {_SELECT_COLUMNS} FROM posts WHERE {where} "
                    "ORDER BY updated_at, id LIMIT :limit"
                ),
                {"limit": limit},
            )
            return [PostRecord.from_row(row) for row in result.mappings()]
