"""Logging setup: one rotating application log plus per-channel side logs."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

# logger name -> (file name, level). Records still propagate to the main log.
SIDE_LOGS: dict[str, tuple[str, int]] = {
    "tools.agent_sdk_client": ("llm_calls.log", logging.DEBUG),
    "workflow": ("runs.log", logging.INFO),
}

# Transport chatter from third-party libraries, capped at WARNING
_QUIET_LOGGERS = ("claude_agent_sdk", "asyncio")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        str(path),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _close_handlers(logger: logging.Logger):
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str | Path] = None,
    console_enabled: bool = True,
) -> None:
    """Configure application-wide logging.

    Safe to call repeatedly; handlers from an earlier call are closed and replaced.

    Args:
        level: Level for the root logger and the main log file.
        log_dir: Directory for log files. Defaults to ./data/logs.
        console_enabled: Also log to stderr. The CLI turns this off while the
            Rich progress display owns the terminal.
    """
    log_dir = Path(log_dir or "./data/logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _close_handlers(root_logger)

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(log_dir / "autowrite.log", level, formatter))

    for name, (filename, side_level) in SIDE_LOGS.items():
        channel = logging.getLogger(name)
        _close_handlers(channel)
        channel.addHandler(_rotating_handler(log_dir / filename, side_level, formatter))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug("Logging initialized: level=%s, dir=%s", level, log_dir)
