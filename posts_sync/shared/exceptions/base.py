"""
Excepción base para todas las excepciones personalizadas del sync.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepción base de la aplicación.
    Todas las excepciones personalizadas deben heredar de esta clase.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error descriptivo
            error_code: Código de error personalizado
            details: Detalles adicionales del error
            cause: Excepción original que provocó este error (si existe)
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Representación serializable para logs y resultados de workflow."""
        data: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data
