"""
Utilidades de fechas para el sync.

Todas las marcas de tiempo se persisten como ISO-8601 en UTC con
milisegundos y sufijo 'Z', de modo que la igualdad de strings equivale
a la igualdad de instantes.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Un datetime naive se asume UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_z(dt: datetime) -> str:
    """Serializa a '2025-01-02T03:04:05.000Z'."""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parsea un string ISO-8601 (acepta sufijo 'Z').

    Retorna None si el valor está vacío o no es parseable.
    """
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except (ValueError, TypeError):
        return None


def normalize_iso(value: str) -> str:
    """
    Normaliza un timestamp remoto al formato persistido.

    Raises:
        ValueError: si el valor no es un ISO-8601 válido
    """
    parsed = parse_iso(value)
    if parsed is None:
        raise ValueError(f"Timestamp inválido: {value!r}")
    return to_iso_z(parsed)


def is_later(candidate: str, reference: Optional[str]) -> bool:
    """
    True si `candidate` es estrictamente posterior a `reference`.

    Una referencia ausente o ilegible cuenta como "más antigua".
    """
    candidate_dt = parse_iso(candidate)
    reference_dt = parse_iso(reference)
    if candidate_dt is None:
        return False
    if reference_dt is None:
        return True
    return candidate_dt > reference_dt
