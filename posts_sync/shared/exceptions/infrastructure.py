"""
Excepciones de integración con sistemas externos (APIs, base de datos).
"""
from typing import Any, Dict, Optional

from posts_sync.shared.exceptions.base import AppException


class RemoteAPIError(AppException):
    """Fallo en una llamada al document store o a un proveedor de generación."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {"service": service}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            error_code="REMOTE_API_ERROR",
            details=details,
            cause=cause,
        )
        self.service = service
        self.status_code = status_code


class StorageError(AppException):
    """Fallo del almacén relacional (incluye fallos a mitad de transacción)."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            cause=cause,
        )


class WriteError(StorageError):
    """
    Un chunk del BatchWriter falló y fue revertido.

    Los chunks anteriores ya quedaron confirmados; los siguientes no se intentan.
    """

    def __init__(
        self,
        message: str,
        intent_type: str,
        chunk_index: int,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            error_code="WRITE_ERROR",
            details={"intent_type": intent_type, "chunk_index": chunk_index},
            cause=cause,
        )
        self.intent_type = intent_type
        self.chunk_index = chunk_index
