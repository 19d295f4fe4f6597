from __future__ import annotations

import inspect
import logging
import sys
from functools import wraps
from typing import Any, Callable, Mapping

from loguru import logger

from .config import Settings, get_settings

_DEV_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | " \
    "<level>{level: <8}</level> | " \
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - " \
    "<level>{message}</level>"

_PROD_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message}"


def _summarize(value: Any) -> Any:
    """Shrink game objects to something readable in a single debug line."""
    if isinstance(value, Mapping):
        return {k: _summarize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_summarize(item) for item in value]
    if hasattr(value, "players") and hasattr(value, "model_dump"):
        return [_summarize(player) for player in value.players]
    if hasattr(value, "name") and hasattr(value, "is_alive"):
        return f"{value.name}{'' if value.is_alive else '(dead)'}"
    if hasattr(value, "model_dump"):
        return value.model_dump(exclude_defaults=True)
    return value


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin shim
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(settings: Settings | None = None, verbose: bool = False) -> None:
    """Configure Loguru logging based on the active environment."""

    settings = settings or get_settings()
    logger.remove()

    if verbose or settings.environment in {"development", "test"}:
        logger.add(sys.stderr, level="DEBUG", format=_DEV_FORMAT, backtrace=True, diagnose=True)
    elif settings.environment == "staging":
        logger.add(sys.stderr, level="INFO", format=_PROD_FORMAT, backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level="WARNING", format=_PROD_FORMAT, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for library_logger in ("anyio", "asyncio"):
        logging.getLogger(library_logger).handlers = []
        logging.getLogger(library_logger).propagate = True


def log_call(category: str | None = None, redact: tuple[str, ...] = ()) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that emits debug logs when the wrapped callable executes.

    Arguments named in ``redact`` are logged as a placeholder instead of their value.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        signature = inspect.signature(func)
        log_category = category or func.__qualname__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = signature.bind_partial(*args, **kwargs)
            bound.apply_defaults()
            payload = {
                k: "<redacted>" if k in redact else v
                for k, v in bound.arguments.items()
                if k not in {"self", "rng"}
            }
            logger.bind(category=log_category).opt(lazy=True).debug(
                "Entering {func} with args={args}",
                func=lambda: func.__qualname__,
                args=lambda: _summarize(payload),
            )
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.bind(category=log_category).exception("Error in {}", func.__qualname__)
                raise
            logger.bind(category=log_category).debug(
                "Completed {} -> {}",
                func.__qualname__,
                type(result).__name__ if result is not None else "None",
            )
            return result

        wrapper.__signature__ = signature  # type: ignore[attr-defined]
        return wrapper

    return decorator
