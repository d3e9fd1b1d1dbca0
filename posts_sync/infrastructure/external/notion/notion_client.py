"""
Cliente mínimo de la API REST de Notion (httpx, sin SDK).

Cubre:
- lectura de una página (metadata + propiedades)
- listado paginado de bloques hijos (cursor)
- extracción de texto plano del cuerpo de una página

Todas las llamadas pasan por el RateLimiter (3/s, 90/min). No hay
reintentos: un error HTTP o de red se propaga como RemoteAPIError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from loguru import logger

from posts_sync.infrastructure.external.notion.properties import PropertyBag
from posts_sync.shared.exceptions import RemoteAPIError
from posts_sync.shared.utils.rate_limiter import NOTION_RATE_LIMITS, RateLimiter

SERVICE_NAME = "notion"

# Bloques cuyo rich_text forma parte del cuerpo legible
TEXT_BLOCK_TYPES = frozenset({
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "quote",
    "callout",
    "to_do",
    "toggle",
    "code",
})


@dataclass(frozen=True)
class DocumentPayload:
    """Página de Notion tal como la consume el sync."""

    id: str
    created_time: str
    last_edited_time: str
    url: str
    properties: PropertyBag = field(compare=False)
    archived: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DocumentPayload":
        return cls(
            id=str(data.get("id") or ""),
            created_time=str(data.get("created_time") or ""),
            last_edited_time=str(data.get("last_edited_time") or ""),
            url=str(data.get("url") or ""),
            properties=PropertyBag.from_raw(data.get("properties")),
            archived=bool(data.get("archived") or data.get("in_trash")),
        )


@dataclass(frozen=True)
class ChildBlock:
    id: str
    type: str
    has_children: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_child_page(self) -> bool:
        return self.type == "child_page"


@dataclass(frozen=True)
class ChildrenPage:
    items: List[ChildBlock]
    next_cursor: Optional[str] = None
    has_more: bool = False


class NotionClient:
    """
    Cliente HTTP de Notion.

    Se le puede inyectar un `httpx.AsyncClient` (por ejemplo con
    MockTransport en tests); si no, crea uno propio y lo cierra en `aclose`.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.notion.com/v1",
        api_version: str = "2022-06-28",
        timeout_s: float = 30.0,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
        page_size: int = 100,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": api_version,
            "Content-Type": "application/json",
        }
        self._rate_limiter = rate_limiter or RateLimiter(NOTION_RATE_LIMITS)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._page_size = page_size

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"

        async def _call() -> httpx.Response:
            return await self._client.get(url, headers=self._headers, params=params)

        try:
            resp = await self._rate_limiter.schedule(_call)
        except httpx.HTTPError as e:
            raise RemoteAPIError(f"Error de red con Notion: {e}", service=SERVICE_NAME, cause=e) from e

        if resp.status_code >= 300:
            raise RemoteAPIError(
                f"Notion respondió {resp.status_code} en {path}: {resp.text[:300]}",
                service=SERVICE_NAME,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteAPIError(f"Respuesta no JSON de Notion en {path}", service=SERVICE_NAME, cause=e) from e
        if not isinstance(data, dict):
            raise RemoteAPIError(f"Respuesta de Notion en {path} no es un objeto", service=SERVICE_NAME)
        return data

    async def retrieve_document(self, page_id: str) -> DocumentPayload:
        """
        Raises:
            RemoteAPIError: fallo HTTP o de red
            ValidationError: propiedades con forma inválida
        """
        data = await self._get(f"/pages/{page_id}")
        return DocumentPayload.from_api(data)

    async def list_children(self, page_id: str, cursor: Optional[str] = None) -> ChildrenPage:
        """Una página de bloques hijos de `page_id`."""
        params: Dict[str, Any] = {"page_size": self._page_size}
        if cursor:
            params["start_cursor"] = cursor

        data = await self._get(f"/blocks/{page_id}/children", params=params)
        items = [
            ChildBlock(
                id=str(block.get("id") or ""),
                type=str(block.get("type") or ""),
                has_children=bool(block.get("has_children")),
                raw=block,
            )
            for block in data.get("results") or []
        ]
        has_more = bool(data.get("has_more"))
        return ChildrenPage(
            items=items,
            next_cursor=data.get("next_cursor") if has_more else None,
            has_more=has_more,
        )

    async def iter_children(self, page_id: str) -> AsyncIterator[ChildBlock]:
        """Itera todos los bloques hijos siguiendo el cursor."""
        cursor: Optional[str] = None
        while True:
            page = await self.list_children(page_id, cursor)
            for item in page.items:
                yield item
            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor

    async def iter_child_page_ids(self, page_id: str) -> AsyncIterator[str]:
        async for block in self.iter_children(page_id):
            if block.is_child_page and block.id:
                yield block.id

    async def fetch_page_text(self, page_id: str) -> str:
        """
        Texto plano del cuerpo de la página (solo bloques de primer nivel).

        Retorna "" si la página no tiene bloques de texto.
        """
        lines: List[str] = []
        async for block in self.iter_children(page_id):
            if block.type not in TEXT_BLOCK_TYPES:
                continue
            content = block.raw.get(block.type) or {}
            text = "".join(
                str(item.get("plain_text") or "")
                for item in content.get("rich_text") or []
            ).strip()
            if text:
                lines.append(text)

        logger.debug(f"Notion: {len(lines)} bloques de texto en página {page_id}")
        return "\n".join(lines)
