from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from remote_loader.config.models import FileLoggingSettings, LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_level(value: str) -> int:
    level = logging.getLevelNamesMapping().get(value.strip().upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {value}")
    return level


def _open_file_handler(settings: FileLoggingSettings, path: Path) -> TimedRotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        interval=1,
        backupCount=settings.rotation.backup_count,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Configure the root logger for a loader process.

    Every level name is validated before anything is changed, so a bad config leaves
    the current logging setup untouched. Handlers carry no level of their own, so the
    per-logger overrides in `settings.loggers` can raise or lower a subtree (for example
    `remote_loader.loader` at DEBUG, `aiohttp` at WARNING).
    """
    level = _parse_level(settings.level)
    overrides = {name: _parse_level(value) for name, value in settings.loggers.items()}

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    file_error: OSError | None = None
    file_path = settings.file.path.strip()
    if file_path:
        try:
            handlers.append(_open_file_handler(settings.file, Path(file_path)))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name, override in overrides.items():
        logging.getLogger(name).setLevel(override)

    if file_error is not None:
        root_logger.error(
            "File logging handler failed to initialize. path=%s",
            file_path,
            exc_info=file_error,
        )


__all__ = ["LOG_DATE_FORMAT", "LOG_FORMAT", "init_logging"]
