"""
Logging and the exception hierarchy shared by every AniSync component.

Records go to a UTF-8 log file and to a Rich console handler. The file keeps
the full run history; the console only shows what the current command asked
for (warnings by default).
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

# Shared by the log handler, progress bars and CLI tables
console = Console()

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Query parameter names whose values never reach the log
SENSITIVE_PARAMS = ("token", "secret", "password", "api_key", "apikey", "authorization")

LevelLike = Union[str, int]


class AniSyncError(Exception):
    """Base class for errors raised by the pipeline."""


class ConfigError(AniSyncError):
    """Invalid or missing settings."""


class APIError(AniSyncError):
    """An external catalog call failed: transport, HTTP status or GraphQL `errors`."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(AniSyncError):
    """The database is unreachable or refused a write."""


class ValidationError(AniSyncError):
    """A provider record or a request body cannot be used."""


class ReviewError(AniSyncError):
    """A pending match cannot take the requested decision."""


def _level(value: LevelLike) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class AniSyncLogger:
    """Owns the file and console handlers on the root logger. Built by setup_logging()."""

    def __init__(self, log_file: str = "anisync.log", file_level: LevelLike = "INFO",
                 console_level: LevelLike = "WARNING"):
        self.log_file = log_file
        self.console = console

        self.file_handler = logging.FileHandler(log_file, encoding="utf-8")
        self.file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        self.console_handler = RichHandler(console=console, show_path=False, markup=True, keywords=[])

        logging.getLogger().handlers = [self.file_handler, self.console_handler]
        self.set_file_level(file_level)
        self.set_console_level(console_level)

    def handler_for(self, target: str) -> logging.Handler:
        return self.console_handler if target == "console" else self.file_handler

    def apply_level(self, handler: logging.Handler, level: LevelLike) -> None:
        handler.setLevel(_level(level))
        # Root must pass everything the most verbose handler wants
        levels = [h.level for h in (self.file_handler, self.console_handler) if h.level]
        logging.getLogger().setLevel(min(levels) if levels else logging.NOTSET)

    def set_console_level(self, level: LevelLike, clean: bool = False) -> None:
        """`clean` drops the time and level columns for progress-style output."""
        self.apply_level(self.console_handler, level)
        self.console_handler._log_render.show_time = not clean
        self.console_handler._log_render.show_level = not clean

    def set_file_level(self, level: LevelLike) -> None:
        self.apply_level(self.file_handler, level)


_instance: Optional[AniSyncLogger] = None


def setup_logging(log_file: str = "anisync.log", file_level: Optional[LevelLike] = None,
                  console_level: Optional[LevelLike] = None) -> AniSyncLogger:
    """
    Installs the root handlers on first use and returns the shared instance.

    Later calls keep the existing handlers and only apply the levels given.
    """
    global _instance
    if _instance is None:
        _instance = AniSyncLogger(log_file, file_level or "INFO", console_level or "WARNING")
        return _instance
    if file_level:
        _instance.set_file_level(file_level)
    if console_level:
        _instance.set_console_level(console_level)
    return _instance


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)


def set_log_level(level: LevelLike, handler_type: str = "both", clean: bool = False) -> None:
    """handler_type is 'console', 'file' or 'both'."""
    instance = setup_logging()
    if handler_type in ("console", "both"):
        instance.set_console_level(level, clean=clean)
    if handler_type in ("file", "both"):
        instance.set_file_level(level)


@contextmanager
def temporary_log_level(level: LevelLike, handler_type: str = "console") -> Iterator[None]:
    instance = setup_logging()
    handler = instance.handler_for(handler_type)
    previous = handler.level
    instance.apply_level(handler, level)
    try:
        yield
    finally:
        instance.apply_level(handler, previous)


def log_step(message: str) -> None:
    """Headline for a command: always in the file, a panel on the console at INFO and below."""
    instance = setup_logging()
    logging.getLogger("anisync.step").info(message)
    if instance.console_handler.level <= logging.INFO:
        instance.console.print(Panel(message, style="bold magenta"))


def log_substep(message: str) -> None:
    get_logger("anisync.step").info(f"  [cyan]>[/cyan] {message}")


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of `params` with credential-looking values replaced."""
    return {
        key: "***" if isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_PARAMS) else value
        for key, value in params.items()
    }


def log_api_call(url: str, method: str, params: Optional[Dict[str, Any]] = None) -> None:
    """DEBUG-level trace of an outgoing provider request."""
    logger = get_logger("anisync.http")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"{method} {url} params={mask_params(params or {})}")


__all__ = [
    "AniSyncError",
    "ConfigError",
    "APIError",
    "StoreError",
    "ValidationError",
    "ReviewError",
    "AniSyncLogger",
    "console",
    "setup_logging",
    "get_logger",
    "set_log_level",
    "temporary_log_level",
    "log_step",
    "log_substep",
    "mask_params",
    "log_api_call",
]
