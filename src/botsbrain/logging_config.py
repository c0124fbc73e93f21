# src/botsbrain/logging_config.py
"""
Logging configuration for botsbrain and the bot process that embeds it.

Library modules only ever call ``logging.getLogger(__name__)``; this module
is for the owning process, which calls :func:`configure_logging` once at
startup (typically with ``load_config().logging``).

Supported settings:
- Console logging with display-level gating (see DisplayFilter)
- Optional file logging with size-based rotation
- Per-component log level overrides

Key concepts:

    **Display filter**: When ``console_enabled=False``, the console handler
    still exists but only passes records that carry
    ``extra={"display": True}``.  Operational messages such as
    "Storage connected (memory, redis, postgres)" can then reach the
    operator while per-key debug chatter stays in the file.

Usage:
    from botsbrain.config import load_config
    from botsbrain.logging_config import configure_logging, log_display

    configure_logging(app_name="support-bot", config=load_config().logging)

    logger = logging.getLogger("support-bot.startup")
    log_display(logger, logging.INFO, "Storage ready with %d layers", 3)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": True,
    "console_level": "INFO",
    "console_format": "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s",
    "file_enabled": False,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/botsbrain/logs",
    "file_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "botsbrain": "INFO",
        "asyncpg": "WARNING",
        "redis": "WARNING",
        "asyncio": "WARNING",
    },
}


def _level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


# ---------------------------------------------------------------------------
# DisplayFilter
# ---------------------------------------------------------------------------


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    With the console globally enabled every record passes and the handler's
    own level does the filtering.  Otherwise only records flagged
    ``display=True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level
        return False


# ---------------------------------------------------------------------------
# Handler setup
# ---------------------------------------------------------------------------


class _LoggingState:
    """Handlers installed by :func:`configure_logging`."""

    def __init__(self) -> None:
        self.configured = False
        self.console_handler: logging.Handler | None = None
        self.file_handler: logging.Handler | None = None
        self.log_file_path: Path | None = None


_state = _LoggingState()


def _create_console_handler(config: dict[str, Any]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    enabled = bool(config.get("console_enabled", True))
    # With the console "off" the filter is the sole gate.
    handler.setLevel(_level(config["console_level"], logging.INFO) if enabled else logging.DEBUG)
    handler.setFormatter(logging.Formatter(config["console_format"]))
    handler.addFilter(
        DisplayFilter(
            console_globally_enabled=enabled,
            display_min_level=_level(config["display_min_level"], logging.INFO),
        )
    )
    return handler


def _create_file_handler(
    config: dict[str, Any], app_name: str
) -> tuple[logging.Handler | None, Path | None]:
    log_dir = Path(os.path.expanduser(config["file_directory"]))
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        sys.stderr.write(f"Warning: Cannot create log directory {log_dir}: {e}\n")
        return None, None

    try:
        filename = config["file_name"].format(app=app_name)
    except (KeyError, ValueError):
        filename = f"{app_name}.log"
    log_file_path = log_dir / filename

    try:
        handler = RotatingFileHandler(
            log_file_path,
            maxBytes=config["rotation_max_bytes"],
            backupCount=config["rotation_backup_count"],
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
        return None, None

    handler.setLevel(_level(config["file_level"], logging.DEBUG))
    handler.setFormatter(logging.Formatter(config["file_format"]))
    return handler, log_file_path


# ---------------------------------------------------------------------------
# Public module-level functions
# ---------------------------------------------------------------------------


def configure_logging(
    app_name: str = "botsbrain",
    config: dict[str, Any] | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """
    Configure root logging for the process.

    Args:
        app_name: Name of the application (used in the log filename)
        config: Overrides for DEFAULT_LOGGING_CONFIG; ``components`` is merged key by key
        force_reconfigure: If True, replace handlers installed by an earlier call

    Returns:
        Path to the log file, or None when file logging is disabled
    """
    if _state.configured and not force_reconfigure:
        return _state.log_file_path

    log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
    log_config["components"] = {
        **DEFAULT_LOGGING_CONFIG["components"],
        **(config or {}).get("components", {}),
    }

    reset_logging()
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    _state.console_handler = _create_console_handler(log_config)
    root_logger.addHandler(_state.console_handler)

    if log_config.get("file_enabled"):
        _state.file_handler, _state.log_file_path = _create_file_handler(log_config, app_name)
        if _state.file_handler is not None:
            root_logger.addHandler(_state.file_handler)

    for component_name, level in log_config["components"].items():
        set_component_level(component_name, level)

    _state.configured = True
    logging.getLogger(__name__).debug("Logging configured. Log file: %s", _state.log_file_path)
    return _state.log_file_path


def reset_logging() -> None:
    """Remove and close the handlers installed by :func:`configure_logging`."""
    root_logger = logging.getLogger()
    for handler in (_state.console_handler, _state.file_handler):
        if handler is not None:
            root_logger.removeHandler(handler)
            handler.close()
    _state.__init__()


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also reaches the console when it is otherwise silent.

    The caller's ``extra`` dict is merged, not replaced.
    """
    extra = dict(kwargs.pop("extra", None) or {})
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def get_log_file_path() -> Path | None:
    """Get the current log file path."""
    return _state.log_file_path


def set_console_level(level: str | int) -> None:
    """Change console log level at runtime."""
    if _state.console_handler is not None:
        _state.console_handler.setLevel(_level(level, logging.INFO))


def set_component_level(component: str, level: str | int) -> None:
    """Change a specific component's log level at runtime."""
    logging.getLogger(component).setLevel(_level(level, logging.INFO))
