"""
Exception logging helpers that never raise themselves.

Pipeline errors carry a ``tier`` (see rewrite_proxy.errors); it is included
in the log line so recovered, request-fatal and startup failures can be told
apart in the logs.
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def error_tier(exception) -> str:
    return getattr(exception, "tier", None) or "unexpected"


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception as ``Type: message``.

    Transport errors from httpx frequently have an empty message, the type
    name keeps those readable.
    """
    if exception is None:
        return "None"
    try:
        message = _safe_str(exception)
        name = type(exception).__name__
        return f"{name}: {message}" if message else name
    except Exception:
        return "<exception (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its tier and traceback.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Rules]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        message = (
            f"{safe_prefix} {error_tier(exception)} error: "
            f"{format_exception_message(exception)}"
        )
        try:
            logger.log(
                level,
                message,
                exc_info=exception if exception is not None else False,
            )
        except Exception:
            # If logging with exc_info fails, try without it
            logger.log(level, message)
    except Exception:
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            # If even this fails, give up completely (don't propagate the exception)
            pass
