"""
Almacenamiento de imágenes en R2 (API compatible con S3).

Descarga la imagen generada con httpx, valida tipo y tamaño, y la sube con
boto3. boto3 es síncrono, así que `put_object` corre en `asyncio.to_thread`.

`upload` nunca lanza por problemas de la subida: los reporta en
`UploadResult`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_SIZE_BYTES = 10 * 1024 * 1024

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class UploadResult:
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


def extension_for(content_type: Optional[str], default: str = "png") -> str:
    """Extensión de archivo para un content-type de la allowlist."""
    if not content_type:
        return default
    return _EXTENSIONS.get(content_type.split(";")[0].strip().lower(), default)


def guess_extension_from_url(url: str, default: str = "png") -> str:
    path = url.split("?", 1)[0].lower()
    for ext in ("jpg", "jpeg", "png", "webp"):
        if path.endswith("." + ext):
            return "jpg" if ext == "jpeg" else ext
    return default


class R2BlobStorage:
    def __init__(
        self,
        *,
        endpoint_url: str,
        access_key_id: str,
        secret_access_key: str,
        bucket: str,
        public_url: str,
        timeout_s: float = 30.0,
        s3_client: Any = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._bucket = bucket
        self._public_url = public_url.rstrip("/") + "/"
        self._s3 = s3_client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
        )
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def public_url_for(self, key: str) -> str:
        return self._public_url + key.lstrip("/")

    async def upload(self, source_url: str, key: str) -> UploadResult:
        """Descarga `source_url` y la guarda bajo `key`."""
        try:
            resp = await self._http.get(source_url)
        except httpx.HTTPError as e:
            logger.error(f"R2: no se pudo descargar {source_url}: {e}")
            return UploadResult(success=False, error=f"Descarga fallida: {e}")

        if resp.status_code >= 300:
            return UploadResult(success=False, error=f"Descarga fallida: HTTP {resp.status_code}")

        content_type = (resp.headers.get("content-type") or "image/jpeg").split(";")[0].strip().lower()
        if content_type not in ALLOWED_CONTENT_TYPES:
            return UploadResult(success=False, error=f"Tipo de contenido no permitido: {content_type}")

        body = resp.content
        declared = resp.headers.get("content-length")
        size = max(len(body), int(declared) if declared and declared.isdigit() else 0)
        if size > MAX_SIZE_BYTES:
            return UploadResult(
                success=False,
                error=f"Imagen de {size} bytes excede el máximo ({MAX_SIZE_BYTES})",
            )

        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"R2: fallo al subir {key}: {e}")
            return UploadResult(success=False, error=f"Subida fallida: {e}")

        url = self.public_url_for(key)
        logger.info(f"R2: imagen subida en {url}")
        return UploadResult(success=True, url=url)
