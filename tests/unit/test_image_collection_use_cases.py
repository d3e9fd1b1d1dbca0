"""
Tests del colector de tareas de imagen.
"""
from typing import Dict

import pytest
from unittest.mock import AsyncMock

from posts_sync.application.use_cases.image_collection_use_cases import (
    TaskLifecycleManager,
    blob_key_for,
)
from posts_sync.domain.entities.change_intent import InsertIntent
from posts_sync.domain.entities.image_task import ImageTaskState, ImageTaskStatus
from posts_sync.infrastructure.external.storage.blob_storage import UploadResult
from posts_sync.shared.exceptions import RemoteAPIError, ValidationError, WriteError

NOW_ISO = "2025-01-02T03:04:05.000Z"


def _provider(statuses: Dict[str, object]) -> AsyncMock:
    """Provider falso: cada task_id devuelve un status o lanza una excepción."""
    provider = AsyncMock()

    async def check_status(task_id: str) -> ImageTaskStatus:
        outcome = statuses[task_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    provider.check_status.side_effect = check_status
    return provider


async def _seed(writer, *records) -> None:
    await writer.execute([InsertIntent(r) for r in records], 50)


# ============================================================================
# Transiciones de estado
# ============================================================================

class TestTransitions:

    @pytest.mark.asyncio
    async def test_failed_task_records_error_and_clears_task(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.FAILED, error="quota exceeded"),
        })

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_task_id is None
        assert p1.error == "quota exceeded"
        assert p1.image_url is None
        assert p1.updated_at == NOW_ISO
        assert (result.success, result.failed, result.completed) == (True, 1, 0)

    @pytest.mark.asyncio
    async def test_failed_task_keeps_existing_image_url(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1", image_url="https://img/old.png"))
        provider = _provider({"tid1": ImageTaskStatus(state=ImageTaskState.FAILED, error="boom")})

        await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        assert (await repository.get_by_id("p1")).image_url == "https://img/old.png"

    @pytest.mark.asyncio
    async def test_succeeded_task_stores_image_and_clears_task(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1", error="anterior"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p1.png"),
        })

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_url == "https://img/p1.png"
        assert p1.hosted_image_url is None
        assert p1.image_task_id is None
        assert p1.error is None
        assert result.completed == 1

    @pytest.mark.asyncio
    async def test_pending_task_is_left_untouched(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"))
        provider = _provider({"tid1": ImageTaskStatus(state=ImageTaskState.PENDING)})
        writer.execute = AsyncMock(wraps=writer.execute)

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        writer.execute.assert_not_called()
        p1 = await repository.get_by_id("p1")
        assert p1.image_task_id == "tid1"
        assert p1.updated_at == "2025-01-01T00:00:00.000Z"
        assert result.pending == 1

    @pytest.mark.asyncio
    async def test_exception_is_treated_as_failure(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"), make_post("p2", image_task_id="tid2"))
        provider = _provider({
            "tid1": RemoteAPIError("timeout", service="dashscope"),
            "tid2": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p2.png"),
        })

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_task_id is None
        assert p1.error == "timeout"
        assert (await repository.get_by_id("p2")).image_url == "https://img/p2.png"
        assert (result.failed, result.completed) == (1, 1)

    @pytest.mark.asyncio
    async def test_each_task_is_checked_exactly_once(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, *[make_post(f"p{i}", image_task_id=f"tid{i}") for i in range(4)])
        await _seed(writer, make_post("no-task"))
        provider = _provider({f"tid{i}": ImageTaskStatus(state=ImageTaskState.PENDING) for i in range(4)})

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        checked = sorted(c.args[0] for c in provider.check_status.call_args_list)
        assert checked == ["tid0", "tid1", "tid2", "tid3"]
        assert result.processed == 4

    @pytest.mark.asyncio
    async def test_no_pending_tasks(self, repository, writer, fixed_clock):
        provider = _provider({})

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        assert result.success is True
        assert result.processed == 0
        provider.check_status.assert_not_called()


# ============================================================================
# Límite de tareas
# ============================================================================

class TestTaskCap:

    @pytest.mark.asyncio
    async def test_too_many_tasks_fails_without_truncating(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, *[make_post(f"p{i}", image_task_id=f"tid{i}") for i in range(3)])
        provider = _provider({})

        result = await TaskLifecycleManager(
            repository, provider, writer, max_tasks=2, clock=fixed_clock
        ).collect()

        assert result.success is False
        assert "Demasiadas tareas" in result.error
        provider.check_status.assert_not_called()

    def test_max_tasks_must_be_positive(self, repository, writer):
        with pytest.raises(ValidationError):
            TaskLifecycleManager(repository, _provider({}), writer, max_tasks=0)


# ============================================================================
# Copia al blob storage
# ============================================================================

class TestBlobUpload:

    @pytest.mark.asyncio
    async def test_successful_upload_sets_hosted_url(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p1.webp?sig=1"),
        })
        blob = AsyncMock()
        blob.upload.return_value = UploadResult(success=True, url="https://cdn/posts/p1.webp")

        result = await TaskLifecycleManager(
            repository, provider, writer, blob_storage=blob, clock=fixed_clock
        ).collect()

        blob.upload.assert_awaited_once_with("https://img/p1.webp?sig=1", "posts/p1.webp")
        p1 = await repository.get_by_id("p1")
        assert p1.hosted_image_url == "https://cdn/posts/p1.webp"
        assert p1.image_url == "https://img/p1.webp?sig=1"
        assert result.uploaded == 1

    @pytest.mark.asyncio
    async def test_failed_upload_still_records_image(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p1.png"),
        })
        blob = AsyncMock()
        blob.upload.return_value = UploadResult(success=False, error="Tipo de contenido no permitido")

        result = await TaskLifecycleManager(
            repository, provider, writer, blob_storage=blob, clock=fixed_clock
        ).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_url == "https://img/p1.png"
        assert p1.hosted_image_url is None
        assert p1.image_task_id is None
        assert (result.completed, result.uploaded) == (1, 0)


# ============================================================================
# Aislamiento de fallos por post
# ============================================================================

class TestPerPostIsolation:

    @pytest.mark.asyncio
    async def test_upload_exception_fails_only_that_post(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"), make_post("p2", image_task_id="tid2"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p1.png"),
            "tid2": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p2.png"),
        })
        blob = AsyncMock()

        async def upload(source_url: str, key: str) -> UploadResult:
            if key == "posts/p1.png":
                raise RuntimeError("boom")
            return UploadResult(success=True, url=f"https://cdn/{key}")

        blob.upload.side_effect = upload

        result = await TaskLifecycleManager(
            repository, provider, writer, blob_storage=blob, clock=fixed_clock
        ).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_task_id is None
        assert p1.error == "boom"
        assert p1.image_url is None
        p2 = await repository.get_by_id("p2")
        assert p2.image_task_id is None
        assert p2.image_url == "https://img/p2.png"
        assert p2.hosted_image_url == "https://cdn/posts/p2.png"
        assert (result.success, result.completed, result.failed, result.uploaded) == (True, 1, 1, 1)

    @pytest.mark.asyncio
    async def test_write_failure_does_not_stop_other_posts(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1"), make_post("p2", image_task_id="tid2"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.FAILED, error="quota exceeded"),
            "tid2": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/p2.png"),
        })
        execute = writer.execute

        async def flaky_execute(intents, batch_size=50):
            if intents[0].id == "p1":
                raise WriteError("disco lleno", intent_type="update", chunk_index=0)
            return await execute(intents, batch_size)

        writer.execute = AsyncMock(side_effect=flaky_execute)

        result = await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        assert (await repository.get_by_id("p1")).image_task_id == "tid1"
        assert (await repository.get_by_id("p2")).image_url == "https://img/p2.png"
        assert (result.success, result.completed, result.failed) == (True, 1, 1)

    @pytest.mark.asyncio
    async def test_success_after_previous_failure_clears_error(self, repository, writer, fixed_clock, make_post):
        await _seed(writer, make_post("p1", image_task_id="tid1", error="quota exceeded"))
        provider = _provider({
            "tid1": ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url="https://img/x.png"),
        })

        await TaskLifecycleManager(repository, provider, writer, clock=fixed_clock).collect()

        p1 = await repository.get_by_id("p1")
        assert p1.image_url == "https://img/x.png"
        assert p1.error is None
        assert (p1.image_url is not None) != (p1.error is not None)


def test_blob_key_uses_post_id_and_extension():
    assert blob_key_for("abc", "https://x/y/image.jpeg?token=1") == "posts/abc.jpg"
    assert blob_key_for("abc", "https://x/y/no-extension") == "posts/abc.png"
