"""Error handling decorators"""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContextManager
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator for logging errors raised by a function.

    ApplicationErrors are logged at their own level, anything else at
    ``error_level``. The compiler core is synchronous, so only plain
    functions are supported.

    Args:
        error_level: Severity level for errors that are not ApplicationErrors
        reraise: Whether to re-raise the error after logging it

    Returns:
        Decorated function with error handling
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        # Capture the original signature to preserve it
        original_signature = inspect.signature(func)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except ApplicationError as e:
                with ErrorContextManager(e) as ctx:
                    error_context: dict[str, Any] = {
                        "function": func.__name__,
                        "error_context": ctx.to_dict(),
                    }
                    logger.log(
                        e.level.to_logging_level(),
                        f"Error in {func.__name__}: {e!s}",
                        extra=error_context,
                    )
                    if reraise:
                        raise
                    return cast("T", None)
            except Exception as e:
                with ErrorContextManager(e) as ctx:
                    error_context = {
                        "function": func.__name__,
                        "error_context": ctx.to_dict(),
                    }
                    logger.log(
                        error_level.to_logging_level(),
                        f"Error in {func.__name__}: {e!s}",
                        extra=error_context,
                        exc_info=True,
                    )
                    if reraise:
                        raise
                    return cast("T", None)

        # Explicitly set the signature on the wrapper to match the original function
        sync_wrapper.__signature__ = original_signature  # type: ignore
        return sync_wrapper

    return decorator
