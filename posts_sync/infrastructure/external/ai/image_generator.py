"""
Generación asíncrona de imágenes con DashScope (text-to-image).

`create_task` lanza una tarea y retorna su id sin esperar. El resultado se
consulta después con `check_status`, una vez por invocación del colector.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from posts_sync.domain.entities.image_task import (
    ImageTaskCreation,
    ImageTaskState,
    ImageTaskStatus,
)
from posts_sync.infrastructure.external.ai.prompts import IMAGE_NEGATIVE_PROMPT, image_prompt
from posts_sync.shared.exceptions import RemoteAPIError, ValidationError
from posts_sync.shared.utils.rate_limiter import DASHSCOPE_RATE_LIMITS, RateLimiter

SERVICE_NAME = "dashscope"

IMAGE_SYNTHESIS_PATH = "/services/aigc/text2image/image-synthesis"
TASK_STATUS_PATH = "/tasks/{task_id}"

_TASK_ID_RE = re.compile(r"^[A-Za-z0-9-]+$")

# Estados de DashScope que aún no son terminales
_PENDING_STATUSES = {"PENDING", "RUNNING", "SUSPENDED"}


def validate_task_id(task_id: str) -> None:
    if not task_id:
        raise ValidationError("task_id es requerido", field="task_id")
    if not _TASK_ID_RE.match(task_id):
        raise ValidationError(f"Formato de task_id inválido: {task_id!r}", field="task_id")


class DashScopeImageGenerator:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://dashscope.aliyuncs.com/api/v1",
        model: str = "wanx2.1-t2i-turbo",
        size: str = "1024*1024",
        timeout_s: float = 30.0,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.model = model
        self.size = size
        self._rate_limiter = rate_limiter or RateLimiter(DASHSCOPE_RATE_LIMITS)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, *, is_async: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if is_async:
            headers["X-DashScope-Async"] = "enable"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"

        async def _call() -> httpx.Response:
            return await self._client.request(method, url, **kwargs)

        try:
            resp = await self._rate_limiter.schedule(_call)
        except httpx.HTTPError as e:
            raise RemoteAPIError(f"Error de red con DashScope: {e}", service=SERVICE_NAME, cause=e) from e

        if resp.status_code >= 300:
            raise RemoteAPIError(
                f"DashScope respondió {resp.status_code}: {resp.text[:300]}",
                service=SERVICE_NAME,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteAPIError("Respuesta no JSON de DashScope", service=SERVICE_NAME, cause=e) from e

    async def create_task(self, prompt: str) -> ImageTaskCreation:
        """
        Crea una tarea de generación.

        Los fallos se reportan en `ImageTaskCreation.error`, no como excepción.
        """
        if not prompt or not prompt.strip():
            return ImageTaskCreation(error="Prompt de imagen vacío")

        payload = {
            "model": self.model,
            "input": {
                "prompt": image_prompt(prompt),
                "negative_prompt": IMAGE_NEGATIVE_PROMPT,
            },
            "parameters": {"size": self.size, "n": 1},
        }

        try:
            data = await self._request(
                "POST",
                IMAGE_SYNTHESIS_PATH,
                headers=self._headers(is_async=True),
                json=payload,
            )
        except RemoteAPIError as e:
            logger.error(f"No se pudo crear tarea de imagen: {e.message}")
            return ImageTaskCreation(error=e.message)

        task_id = (data.get("output") or {}).get("task_id")
        if not task_id:
            return ImageTaskCreation(error="DashScope no devolvió task_id")

        logger.debug(f"Tarea de imagen creada: {task_id}")
        return ImageTaskCreation(task_id=str(task_id))

    async def check_status(self, task_id: str) -> ImageTaskStatus:
        """
        Consulta una tarea una sola vez.

        Raises:
            ValidationError: task_id mal formado
            RemoteAPIError: fallo HTTP o de red
        """
        validate_task_id(task_id)
        data = await self._request(
            "GET",
            TASK_STATUS_PATH.format(task_id=task_id),
            headers=self._headers(),
        )

        output = data.get("output") or {}
        results = output.get("results") or []
        image_url = next((r.get("url") for r in results if isinstance(r, dict) and r.get("url")), None)
        task_status = str(output.get("task_status") or "").upper()

        if image_url:
            return ImageTaskStatus(state=ImageTaskState.SUCCEEDED, image_url=image_url)

        if task_status in _PENDING_STATUSES:
            return ImageTaskStatus(state=ImageTaskState.PENDING)

        if task_status in ("FAILED", "CANCELED", "UNKNOWN") or task_status == "SUCCEEDED":
            error = (
                output.get("message")
                or output.get("error")
                or output.get("code")
                or ("Tarea sin imagen" if task_status == "SUCCEEDED" else "Tarea fallida")
            )
            return ImageTaskStatus(state=ImageTaskState.FAILED, error=str(error))

        return ImageTaskStatus(state=ImageTaskState.PENDING)
