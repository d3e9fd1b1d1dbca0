"""
Tests del almacenamiento R2 con un cliente S3 falso.
"""
from typing import Any, Dict, List

import httpx
import pytest
from botocore.exceptions import ClientError

from posts_sync.infrastructure.external.storage.blob_storage import (
    MAX_SIZE_BYTES,
    R2BlobStorage,
    extension_for,
    guess_extension_from_url,
)


class FakeS3:
    def __init__(self, error: Exception = None):
        self.calls: List[Dict[str, Any]] = []
        self._error = error

    def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        if self._error is not None:
            raise self._error
        self.calls.append(kwargs)
        return {"ETag": "etag"}


def _storage(handler, s3: FakeS3) -> R2BlobStorage:
    return R2BlobStorage(
        endpoint_url="https://r2.test",
        access_key_id="key",
        secret_access_key="secret",
        bucket="blog",
        public_url="https://cdn.test/",
        s3_client=s3,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _image(content_type: str = "image/png", body: bytes = b"\x89PNG...."):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": content_type})
    return handler


class TestUpload:

    @pytest.mark.asyncio
    async def test_uploads_and_returns_public_url(self):
        s3 = FakeS3()

        result = await _storage(_image(), s3).upload("https://img.test/a.png", "posts/p1.png")

        assert result.success
        assert result.url == "https://cdn.test/posts/p1.png"
        assert s3.calls == [{
            "Bucket": "blog",
            "Key": "posts/p1.png",
            "Body": b"\x89PNG....",
            "ContentType": "image/png",
        }]

    @pytest.mark.asyncio
    async def test_rejects_content_type(self):
        s3 = FakeS3()

        result = await _storage(_image("text/html"), s3).upload("https://img.test/a", "posts/p1.png")

        assert not result.success
        assert "text/html" in result.error
        assert s3.calls == []

    @pytest.mark.asyncio
    async def test_rejects_oversized_image(self):
        s3 = FakeS3()
        body = b"0" * (MAX_SIZE_BYTES + 1)

        result = await _storage(_image("image/jpeg", body), s3).upload("https://img.test/a.jpg", "posts/p1.jpg")

        assert not result.success
        assert s3.calls == []

    @pytest.mark.asyncio
    async def test_download_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        result = await _storage(handler, FakeS3()).upload("https://img.test/a.png", "posts/p1.png")

        assert not result.success
        assert "404" in result.error

    @pytest.mark.asyncio
    async def test_s3_error_is_reported(self):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")

        result = await _storage(_image(), FakeS3(error)).upload("https://img.test/a.png", "posts/p1.png")

        assert not result.success
        assert "Subida fallida" in result.error


def test_extensions():
    assert extension_for("image/jpeg; charset=binary") == "jpg"
    assert extension_for(None) == "png"
    assert guess_extension_from_url("https://x/a.JPEG?sig=1") == "jpg"
    assert guess_extension_from_url("https://x/a") == "png"
