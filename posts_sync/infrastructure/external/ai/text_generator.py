"""
Generador de texto sobre la API de DeepSeek (compatible con OpenAI).

Una sola llamada por prompt, sin streaming.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from posts_sync.infrastructure.external.ai.prompts import MAX_PROMPT_CHARS
from posts_sync.shared.exceptions import RemoteAPIError, ValidationError

SERVICE_NAME = "deepseek"

DEFAULT_MAX_OUTPUT_TOKENS = 8000


@dataclass(frozen=True)
class GeneratedText:
    text: str


class TextGenerator:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.deepseek.com",
        model: str = "deepseek-chat",
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        timeout_s: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self.model = model
        self._max_output_tokens = max_output_tokens
        self._timeout_s = timeout_s
        self._client = client

    async def _ensure_client(self) -> None:
        """Inicializa el cliente de OpenAI si no existe."""
        if not self._client:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_s,
            )

    async def generate(self, prompt: str) -> GeneratedText:
        """
        Genera texto para `prompt`.

        Raises:
            ValidationError: prompt vacío o más largo que MAX_PROMPT_CHARS
            RemoteAPIError: fallo de la API o respuesta sin contenido
        """
        if not prompt or not prompt.strip():
            raise ValidationError("El prompt no puede estar vacío", field="prompt")
        if len(prompt) > MAX_PROMPT_CHARS:
            raise ValidationError(
                f"Prompt de {len(prompt)} caracteres excede el máximo ({MAX_PROMPT_CHARS})",
                field="prompt",
            )

        await self._ensure_client()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self._max_output_tokens,
            )
        except OpenAIError as e:
            logger.error(f"Error generando texto con {self.model}: {e}")
            raise RemoteAPIError(f"Fallo al generar texto: {e}", service=SERVICE_NAME, cause=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise RemoteAPIError("Respuesta vacía del modelo de texto", service=SERVICE_NAME)

        text = content.strip()
        logger.debug(f"Texto generado ({len(text)} caracteres)")
        return GeneratedText(text=text)
