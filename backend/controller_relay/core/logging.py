"""
Root logger setup for the relay process.

Relay loggers follow the configured level. The Socket.IO transport loggers
are held at WARNING so per-packet traffic does not drown out session events.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from controller_relay.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_PREFIX = "relay"
LOG_FILE_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

TRANSPORT_LOGGERS = ("engineio.server", "socketio.server")


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _log_file_path(log_dir: Path | str) -> Path:
    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(tz=timezone.utc).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return dir_path / f"{LOG_FILE_PREFIX}-{stamp}.log"


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | str = logging.INFO,
    transport_level: int | str = logging.WARNING,
) -> Path | None:
    """Install stdout (and optionally file) handlers on the root logger.

    Returns the log file path when ``log_dir`` is given.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_level(level))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_path = _log_file_path(log_dir) if log_dir is not None else None
    if file_path is not None:
        handlers.append(logging.FileHandler(file_path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(resolve_level(transport_level))
    return file_path


def configure_logging(settings: Settings) -> Path | None:
    # debug mode lets transport chatter through
    transport_level = settings.log_level if settings.debug else logging.WARNING
    return setup_logging(
        log_dir=settings.log_dir,
        level=settings.log_level,
        transport_level=transport_level,
    )
