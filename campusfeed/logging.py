"""Loguru logging for the CampusFeed data layer.

Every record carries the signed-in viewer and, inside a service call, the
operation being performed plus a per-call id. Service methods open an
operation scope:

    >>> from campusfeed.logging import operation_context
    >>> with operation_context("like_post", post_id="p1") as log:
    ...     log.info("Post liked")

Human-readable output appends the context as ``key=value`` pairs; JSON output
(production) emits it as top-level fields next to any bound extras.
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from loguru import logger as loguru_logger

from campusfeed.config import settings
from campusfeed.utils import new_id

viewer_var: ContextVar[str | None] = ContextVar("viewer_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
call_id_var: ContextVar[str | None] = ContextVar("call_id", default=None)

TEXT_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
PATCHED_KEYS = ("context", "serialized")


# =============================================================================
# Context
# =============================================================================


def get_log_context() -> dict[str, str]:
    """Context fields that are currently set."""
    context = {
        "viewer_id": viewer_var.get(),
        "operation": operation_var.get(),
        "call_id": call_id_var.get(),
    }
    return {key: value for key, value in context.items() if value is not None}


def bind_viewer(user_id: str | None) -> None:
    """Attach (or detach, with ``None``) the signed-in user to later records."""
    viewer_var.set(user_id)


def clear_log_context() -> None:
    viewer_var.set(None)
    operation_var.set(None)
    call_id_var.set(None)


@contextmanager
def operation_context(operation: str, **fields: Any) -> Iterator[Any]:
    """Scope one service operation.

    Records emitted inside the block carry ``operation`` and a fresh
    ``call_id``; the yielded logger additionally binds ``fields``. The
    previous operation scope is restored on exit, including on error.
    """
    operation_token = operation_var.set(operation)
    call_token = call_id_var.set(new_id("call"))
    try:
        yield logger.bind(**fields)
    finally:
        call_id_var.reset(call_token)
        operation_var.reset(operation_token)


# =============================================================================
# Record Handling
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render a record as one JSON line with context and bound extras."""
    subset: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    subset.update(get_log_context())
    subset.update(
        {key: value for key, value in record["extra"].items() if key not in PATCHED_KEYS}
    )

    if exc := record["exception"]:
        subset["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(subset, default=str)


def patching(record: dict[str, Any]) -> None:
    """Precompute the context suffix and the JSON line for the sinks."""
    context = get_log_context()
    record["extra"]["context"] = " ".join(f"{key}={value}" for key, value in context.items())
    record["extra"]["serialized"] = serialize(record)


def json_formatter(record: dict[str, Any]) -> str:
    return "{extra[serialized]}\n"


def text_formatter(record: dict[str, Any]) -> str:
    suffix = " | {extra[context]}" if record["extra"].get("context") else ""
    return TEXT_FORMAT + suffix + "\n{exception}"


# =============================================================================
# Configuration
# =============================================================================


def setup_logging(level: str | None = None) -> Any:
    """Install the stderr (and optional file) sinks from the active settings.

    Args:
        level: Override for ``settings.log_level`` (the CLI passes DEBUG
            for ``--verbose``)

    Returns:
        The context-patched logger
    """
    level = level or settings.log_level
    formatter = json_formatter if settings.log_json else text_formatter

    loguru_logger.remove()
    patched_logger = loguru_logger.patch(patching)
    patched_logger.add(
        sys.stderr, level=level, format=formatter, colorize=not settings.log_json
    )

    if settings.log_to_file:
        log_file = settings.data_dir / "campusfeed.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched_logger.add(
            log_file,
            level=level,
            format=formatter,
            colorize=False,
            rotation="20 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched_logger


logger = setup_logging()


__all__ = [
    "logger",
    "bind_viewer",
    "clear_log_context",
    "get_log_context",
    "operation_context",
    "serialize",
    "setup_logging",
]
