"""
Rate limiter de ventana deslizante para APIs externas.

Mantiene dos ventanas de timestamps (1 segundo y 60 segundos). Antes de
admitir una llamada poda los timestamps vencidos y, si alguna ventana está
llena, espera en incrementos fijos (polling) hasta que se libere cupo.

No hay cola ni fairness más allá del orden de llegada al loop de polling.
Para el volumen objetivo (decenas de requests por minuto) es suficiente.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, TypeVar

from loguru import logger

from posts_sync.shared.exceptions import ValidationError

T = TypeVar("T")

SECOND_WINDOW_S = 1.0
MINUTE_WINDOW_S = 60.0
DEFAULT_POLL_INTERVAL_S = 0.1


@dataclass(frozen=True)
class RateLimits:
    """Presupuesto de llamadas por segundo y por minuto."""

    max_per_second: int
    max_per_minute: int

    def __post_init__(self) -> None:
        if self.max_per_second <= 0:
            raise ValidationError("max_per_second debe ser mayor que 0", field="max_per_second")
        if self.max_per_minute <= 0:
            raise ValidationError("max_per_minute debe ser mayor que 0", field="max_per_minute")


# Límites publicados de cada proveedor
NOTION_RATE_LIMITS = RateLimits(max_per_second=3, max_per_minute=90)
DASHSCOPE_RATE_LIMITS = RateLimits(max_per_second=5, max_per_minute=100)


class RateLimiter:
    """
    Envoltorio reutilizable alrededor de cualquier llamada asíncrona.

    El reloj y la función de espera se inyectan para poder testear
    el comportamiento temporal de forma determinista.
    """

    def __init__(
        self,
        limits: RateLimits,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        if poll_interval <= 0:
            raise ValidationError("poll_interval debe ser mayor que 0", field="poll_interval")
        self._limits = limits
        self._clock = clock
        self._sleep = sleep
        self._poll_interval = poll_interval
        self._second_window: Deque[float] = deque()
        self._minute_window: Deque[float] = deque()

    @property
    def limits(self) -> RateLimits:
        return self._limits

    def _prune(self, now: float) -> None:
        while self._second_window and now - self._second_window[0] >= SECOND_WINDOW_S:
            self._second_window.popleft()
        while self._minute_window and now - self._minute_window[0] >= MINUTE_WINDOW_S:
            self._minute_window.popleft()

    def _has_capacity(self) -> bool:
        return (
            len(self._second_window) < self._limits.max_per_second
            and len(self._minute_window) < self._limits.max_per_minute
        )

    async def acquire(self) -> None:
        """Espera hasta que ambas ventanas tengan cupo y registra el request."""
        waited = False
        while True:
            now = self._clock()
            self._prune(now)
            if self._has_capacity():
                break
            if not waited:
                logger.debug(
                    f"Rate limit alcanzado ({len(self._second_window)}/s, "
                    f"{len(self._minute_window)}/min). Esperando cupo..."
                )
                waited = True
            await self._sleep(self._poll_interval)

        self._second_window.append(now)
        self._minute_window.append(now)

    async def schedule(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Ejecuta `call` respetando los límites.

        Los errores de la llamada se propagan sin modificar.
        """
        await self.acquire()
        return await call()
