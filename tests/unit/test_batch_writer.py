"""
Tests del motor de escritura por lotes contra SQLite en memoria.
"""
import pytest
from sqlalchemy import event, text

from posts_sync.domain.entities.change_intent import DeleteIntent, InsertIntent, UpdateIntent
from posts_sync.infrastructure.database.batch_writer import BatchWriter
from posts_sync.shared.exceptions import ValidationError, WriteError


def _track_transactions(engine) -> list:
    """Registra cada BEGIN emitido sobre el engine."""
    begins = []
    event.listen(engine.sync_engine, "begin", lambda conn: begins.append(conn))
    return begins


async def _count(engine) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(text("SELECT COUNT(*) FROM posts"))).scalar_one()


# ============================================================================
# Validación previa
# ============================================================================

class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [0, -1, 101])
    async def test_batch_size_out_of_range(self, writer, engine, make_post, batch_size):
        begins = _track_transactions(engine)

        with pytest.raises(ValidationError):
            await writer.execute([InsertIntent(make_post("a"))], batch_size)

        assert begins == []
        assert await _count(engine) == 0

    @pytest.mark.asyncio
    async def test_unknown_update_field_rejected_before_any_transaction(self, writer, engine, make_post):
        await writer.execute([InsertIntent(make_post("a"))], 10)
        begins = _track_transactions(engine)

        with pytest.raises(ValidationError):
            await writer.execute(
                [
                    InsertIntent(make_post("b")),
                    UpdateIntent(id="a", fields={"title; DROP TABLE posts": "x"}),
                ],
                10,
            )

        assert begins == []
        assert await _count(engine) == 1

    @pytest.mark.asyncio
    async def test_immutable_columns_cannot_be_updated(self, writer, make_post):
        with pytest.raises(ValidationError):
            await writer.execute([UpdateIntent(id="a", fields={"created_at": "x"})], 10)
        with pytest.raises(ValidationError):
            await writer.execute([UpdateIntent(id="a", fields={"id": "b"})], 10)

    def test_max_batch_size_cannot_exceed_hard_limit(self, engine):
        with pytest.raises(ValidationError):
            BatchWriter(engine, max_batch_size=500)


# ============================================================================
# Chunking y orden
# ============================================================================

class TestChunking:

    @pytest.mark.asyncio
    async def test_230_inserts_with_batch_100_use_three_transactions(self, writer, engine, make_post):
        intents = [InsertIntent(make_post(f"p{i:03d}")) for i in range(230)]

        summary = await writer.execute(intents, 100)

        assert summary.inserted == 230
        assert summary.transactions["insert"] == [100, 100, 30]
        assert summary.transaction_count == 3
        assert await _count(engine) == 230

    @pytest.mark.asyncio
    async def test_transaction_count_per_type(self, writer, engine, make_post):
        await writer.execute([InsertIntent(make_post(f"old{i}")) for i in range(5)], 50)
        begins = _track_transactions(engine)

        intents = (
            [InsertIntent(make_post(f"new{i}")) for i in range(7)]
            + [UpdateIntent(id=f"old{i}", fields={"title": "t"}) for i in range(3)]
            + [DeleteIntent(id="old4")]
        )
        summary = await writer.execute(intents, 3)

        # ceil(7/3) + ceil(3/3) + ceil(1/3)
        assert summary.transaction_count == 3 + 1 + 1
        assert len(begins) == 5
        assert (summary.inserted, summary.updated, summary.deleted) == (7, 3, 1)

    @pytest.mark.asyncio
    async def test_inserts_apply_before_updates_and_deletes(self, writer, repository, make_post):
        # el update y el delete referencian una fila que solo existe tras el insert
        intents = [
            DeleteIntent(id="b"),
            UpdateIntent(id="a", fields={"summary": "listo"}),
            InsertIntent(make_post("a")),
            InsertIntent(make_post("b")),
        ]

        await writer.execute(intents, 10)

        a = await repository.get_by_id("a")
        assert a is not None and a.summary == "listo"
        assert await repository.get_by_id("b") is None

    @pytest.mark.asyncio
    async def test_update_writes_only_given_columns(self, writer, repository, make_post):
        await writer.execute([InsertIntent(make_post("a", summary="s", tags="x"))], 10)

        await writer.execute(
            [UpdateIntent(id="a", fields={"tags": None, "updated_at": "2025-02-01T00:00:00.000Z"})],
            10,
        )

        a = await repository.get_by_id("a")
        assert a.summary == "s"
        assert a.tags is None
        assert a.updated_at == "2025-02-01T00:00:00.000Z"
        assert a.created_at == "2025-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_empty_intent_list_is_a_noop(self, writer):
        summary = await writer.execute([], 10)
        assert summary.total == 0
        assert summary.transaction_count == 0


# ============================================================================
# Atomicidad por chunk
# ============================================================================

class TestAtomicity:

    @pytest.mark.asyncio
    async def test_failing_chunk_rolls_back_and_aborts(self, writer, engine, repository, make_post):
        await writer.execute([InsertIntent(make_post("dup"))], 10)

        intents = [InsertIntent(make_post(f"ok{i}")) for i in range(3)]
        # segundo chunk: ok3, dup (duplicado), ok4
        intents += [InsertIntent(make_post("ok3")), InsertIntent(make_post("dup")), InsertIntent(make_post("ok4"))]
        # tercer chunk nunca se intenta
        intents += [InsertIntent(make_post("late"))]

        with pytest.raises(WriteError) as exc_info:
            await writer.execute(intents, 3)

        assert exc_info.value.chunk_index == 1
        assert exc_info.value.intent_type == "insert"
        assert exc_info.value.__cause__ is not None

        ids = set(await repository.get_timestamps())
        assert ids == {"dup", "ok0", "ok1", "ok2"}

    @pytest.mark.asyncio
    async def test_not_null_violation_rolls_back_whole_chunk(self, writer, repository, make_post):
        intents = [
            InsertIntent(make_post("a")),
            InsertIntent(make_post("b", title=None)),
        ]

        with pytest.raises(WriteError):
            await writer.execute(intents, 10)

        assert set(await repository.get_timestamps()) == set()

    @pytest.mark.asyncio
    async def test_failed_update_chunk_leaves_previous_insert_chunks(self, writer, repository, make_post):
        await writer.execute([InsertIntent(make_post("a"))], 10)

        intents = [
            InsertIntent(make_post("b")),
            UpdateIntent(id="a", fields={"title": None}),
        ]
        with pytest.raises(WriteError) as exc_info:
            await writer.execute(intents, 10)

        assert exc_info.value.intent_type == "update"
        assert set(await repository.get_timestamps()) == {"a", "b"}
        assert (await repository.get_by_id("a")).title == "Post a"
