"""
Excepciones relacionadas con la lógica de dominio.
"""
from typing import Optional

from posts_sync.shared.exceptions.base import AppException


class ValidationError(AppException):
    """
    Entrada o configuración mal formada.

    Ejemplos: batch size fuera de rango, propiedad requerida ausente
    en un documento, tipo de propiedad incorrecto.
    """

    def __init__(self, message: str, field: Optional[str] = None, cause: Optional[BaseException] = None):
        details = {"field": field} if field else None
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details,
            cause=cause,
        )
        self.field = field


class UnknownError(AppException):
    """Envoltorio para cualquier error que no venga ya clasificado."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(
            message=message,
            error_code="UNKNOWN_ERROR",
            cause=cause,
        )
