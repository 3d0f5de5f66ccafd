"""Size-bounded journal of scheduler activity.

The journal is the operational trace of a scheduler: one timestamped
entry per tick, execution, reschedule and removal. The file is rotated
once it exceeds its size budget so the oldest entries are dropped.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 2 ** 16

_ENTRY_FORMAT = "%(asctime)s\n%(title)s\n%(message)s\n"


class JournalSink:
    """Appends ``(title, body)`` entries to a bounded log file.

    Args:
        path: Journal file path; parent directories are created.
        max_bytes: Size budget before the file is rotated.
        backup_count: Rotated files kept alongside the live one.
    """

    def __init__(
        self,
        path: str | Path,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = 1,
    ) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handler = RotatingFileHandler(
            self._path,
            maxBytes=max_bytes,
            backupCount=max(backup_count, 1),
            encoding="utf-8",
        )
        self._handler.setFormatter(logging.Formatter(_ENTRY_FORMAT))

    @property
    def path(self) -> Path:
        return self._path

    def write(self, title: str, body: str, level: int = logging.INFO) -> None:
        """Append one entry to the journal.

        Args:
            title: Short heading, usually the emitting operation.
            body: Entry text.
            level: Logging level of the entry.
        """
        record = logging.makeLogRecord({
            "name": logger.name,
            "levelno": level,
            "levelname": logging.getLevelName(level),
            "msg": body,
            "title": title,
        })
        self._handler.handle(record)
        logger.debug("%s: %s", title, body)

    def close(self) -> None:
        self._handler.close()
