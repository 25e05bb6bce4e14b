"""Specific error types for the AQL query builder."""

from .base import ApplicationError, ErrorCode, ErrorDetails, ErrorLevel, ValidationErrorDetails


class ConfigurationError(ApplicationError):
    """A query record is not in a compilable state.

    Raised at build time, never while chaining: a FOR variable without a
    source, a data-modification operation without a target collection, or an
    invalid LIMIT/OFFSET.
    """

    def __init__(self, message: str, details: ValidationErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIG_INVALID,
            level=ErrorLevel.ERROR,
            details=details
            or ValidationErrorDetails(source="compiler", operation="build"),
        )


class SerializationError(ApplicationError):
    """A JSON snapshot could not be turned back into a query record."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.DESERIALIZATION_FAILED,
            level=ErrorLevel.ERROR,
            details=details or ErrorDetails(source="serializer", operation="from_json"),
        )
