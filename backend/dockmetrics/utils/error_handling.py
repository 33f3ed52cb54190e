"""Error handling helpers that keep internals out of API responses.

Full exception details go to the server log. Callers only see the
message chosen at the call site.
"""

import logging
from typing import Any, Dict

from fastapi import HTTPException


def safe_error_response(
    logger_instance: logging.Logger,
    error: Exception,
    user_message: str,
    status_code: int = 500,
    log_level: str = "error",
) -> None:
    """Log the error server-side and raise an HTTPException with ``user_message``.

    Raises:
        HTTPException: Always, with ``user_message`` as detail
    """
    log_method = getattr(logger_instance, log_level, logger_instance.error)
    log_method(f"{user_message}: {type(error).__name__}: {error}", exc_info=log_level == "error")
    raise HTTPException(status_code=status_code, detail=user_message)


def error_payload(error: Exception, user_message: str, debug: bool = False) -> Dict[str, Any]:
    """JSON body for an unexpected server error.

    The exception text is only included when ``debug`` is set.
    """
    payload: Dict[str, Any] = {"detail": user_message}
    if debug:
        payload["error"] = f"{type(error).__name__}: {error}"
    return payload


def log_and_continue(
    logger_instance: logging.Logger,
    error: BaseException,
    context_message: str,
    log_level: str = "warning",
) -> None:
    """Log a non-critical error and carry on."""
    log_method = getattr(logger_instance, log_level, logger_instance.warning)
    log_method(f"{context_message}: {type(error).__name__}: {error}")
