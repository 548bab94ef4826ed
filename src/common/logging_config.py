"""
Logging configuration for home-migrate.

Console output goes to stderr. An optional rotating log file receives
everything at DEBUG, as plain text or JSON lines. JSON records carry the
source and destination of the migration in progress and, for failed runs,
the structured sync error.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"

# Record attributes set by migration_context() and extra={"sync_error": ...}
RUN_ATTR = "migration_run"
ERROR_ATTR = "sync_error"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the migration run attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        run = getattr(record, RUN_ATTR, None)
        if run:
            entry["run"] = run

        error = getattr(record, ERROR_ATTR, None)
        if error is not None:
            entry["error"] = error.to_dict()

        if record.exc_info:
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
):
    """
    Configure logging for home-migrate.

    Args:
        level: Console logging level (default: INFO)
        log_file: Path to a rotating log file (optional)
        json_logs: Write the log file as JSON lines
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_logs else logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    logging.getLogger("pyudev").setLevel(logging.WARNING)


@contextmanager
def migration_context(
    source: Union[str, Path],
    destination: Union[str, Path],
) -> Iterator[dict]:
    """
    Tag every record logged inside the block with the run's roots.

    The record factory is process wide, so records from the sync thread
    are tagged too.

    Example:
        with migration_context(Path.home(), "/media/usb/home_backup"):
            runner.start(request)
            runner.wait()
    """
    run = {"source": str(source), "destination": str(destination)}
    previous = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = previous(*args, **kwargs)
        setattr(record, RUN_ATTR, run)
        return record

    logging.setLogRecordFactory(record_factory)
    try:
        yield run
    finally:
        logging.setLogRecordFactory(previous)
