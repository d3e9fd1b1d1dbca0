"""
Tests de la taxonomía de errores.
"""
from posts_sync.shared.exceptions import (
    AppException,
    RemoteAPIError,
    UnknownError,
    ValidationError,
    WriteError,
    handle_error,
)


def test_classified_errors_pass_through():
    error = RemoteAPIError("timeout", service="notion", status_code=504)

    assert handle_error(error) is error
    assert error.to_dict() == {
        "error": "REMOTE_API_ERROR",
        "message": "timeout",
        "details": {"service": "notion", "status_code": 504},
    }


def test_unclassified_errors_are_wrapped():
    original = KeyError("id")

    wrapped = handle_error(original)

    assert isinstance(wrapped, UnknownError)
    assert wrapped.cause is original
    assert wrapped.__cause__ is original
    assert wrapped.to_dict()["cause"] == str(original)


def test_empty_message_uses_class_name():
    assert handle_error(RuntimeError()).message == "RuntimeError"


def test_validation_error_field():
    error = ValidationError("batch_size fuera de rango", field="batch_size")

    assert isinstance(error, AppException)
    assert error.details == {"field": "batch_size"}


def test_write_error_keeps_chunk_context():
    cause = RuntimeError("constraint")
    error = WriteError("fallo", intent_type="insert", chunk_index=2, cause=cause)

    assert error.details["chunk_index"] == 2
    assert error.__cause__ is cause
