"""
Esquema de la tabla `posts` (SQLAlchemy Core).

`create_all` es idempotente: crea tabla e índices si no existen. No es un
sistema de migraciones.
"""
from sqlalchemy import Column, Index, Integer, MetaData, Table, Text
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

posts_table = Table(
    "posts",
    metadata,
    Column("id", Text, primary_key=True),
    # Metadata (no nula)
    Column("title", Text, nullable=False),
    Column("category", Text, nullable=False),
    Column("author", Text, nullable=False),
    Column("source_url", Text, nullable=False),
    Column("source_last_modified", Text, nullable=False),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
    # Extendidos (nulos hasta que se enriquecen)
    Column("excerpt", Text, nullable=True),
    Column("summary", Text, nullable=True),
    Column("reading_minutes", Integer, nullable=True),
    Column("tags", Text, nullable=True),
    Column("image_url", Text, nullable=True),
    Column("hosted_image_url", Text, nullable=True),
    Column("image_task_id", Text, nullable=True),
    Column("error", Text, nullable=True),
)

Index("idx_posts_category", posts_table.c.category)
Index("idx_posts_author", posts_table.c.author)
Index("idx_posts_created_at", posts_table.c.created_at)
Index("idx_posts_updated_at", posts_table.c.updated_at)
Index("idx_posts_source_last_modified", posts_table.c.source_last_modified)
Index("idx_posts_image_task_id", posts_table.c.image_task_id)


async def init_db(engine: AsyncEngine) -> None:
    """Crea la tabla `posts` y sus índices si no existen."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
