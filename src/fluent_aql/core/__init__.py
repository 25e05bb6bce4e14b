from .base import (
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    ValidationErrorDetails,
)
from .errors import ConfigurationError, SerializationError
