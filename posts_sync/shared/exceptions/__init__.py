"""
Taxonomía de errores del sync.
"""
from posts_sync.shared.exceptions.base import AppException
from posts_sync.shared.exceptions.domain import UnknownError, ValidationError
from posts_sync.shared.exceptions.infrastructure import (
    RemoteAPIError,
    StorageError,
    WriteError,
)


def handle_error(error: BaseException) -> AppException:
    """
    Normaliza cualquier excepción a un AppException.

    Las excepciones ya clasificadas se devuelven tal cual; el resto se
    envuelve en UnknownError conservando la causa.
    """
    if isinstance(error, AppException):
        return error
    message = str(error) or error.__class__.__name__
    return UnknownError(message, cause=error)


__all__ = [
    "AppException",
    "ValidationError",
    "UnknownError",
    "RemoteAPIError",
    "StorageError",
    "WriteError",
    "handle_error",
]
