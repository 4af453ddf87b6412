"""
Standardized exception handling for route handlers.

Handlers are wrapped so that HTTPExceptions pass through untouched, known
domain errors map to a fixed status, and anything else is logged with its
traceback and turned into a sanitized 500. Nothing here retries.
"""

import functools
import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

from fastapi import HTTPException

from api.errors import ERROR_MESSAGES

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorMap = Dict[Type[Exception], Tuple[int, str]]


def handle_api_exceptions(
    operation_name: str,
    error_detail: str = ERROR_MESSAGES["general"],
    status_code: int = 500,
    log_errors: bool = True,
    error_map: Optional[ErrorMap] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for standardized exception handling in route handlers.

    Args:
        operation_name: Name of the operation for logging context
        error_detail: Message sent to the client for unexpected errors
        status_code: Status code for unexpected errors
        log_errors: Whether to log unexpected exceptions (default: True)
        error_map: Exception types mapped to (status_code, detail). Checked
            in order with isinstance; matches are logged as warnings.

    The wrapper keeps the handler's signature (functools.wraps), so FastAPI
    still resolves its parameters and dependencies.

    Example:
        @handle_api_exceptions("admin_delete_video", error_map={ObjectStoreError: (500, "...")})
        async def admin_delete_video(...):
            ...
    """
    mapped = error_map or {}

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as e:
                for exc_type, (mapped_status, mapped_detail) in mapped.items():
                    if isinstance(e, exc_type):
                        logger.warning(f"{operation_name} failed with {type(e).__name__}: {e}")
                        raise HTTPException(status_code=mapped_status, detail=mapped_detail) from e
                if log_errors:
                    logger.exception(f"Unexpected error in {operation_name}: {e}")
                raise HTTPException(status_code=status_code, detail=error_detail) from e

        return wrapper

    return decorator
