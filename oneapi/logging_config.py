"""
Logging setup for the gateway.

Every module logs through the shared ``oneapi`` logger. `setup_logging()`
attaches a file handler that starts a fresh ``<LOG_DIR>/<YYYY-MM-DD>/app.log``
each day and keeps records flowing to the console through the root logger.
"""

import datetime
import logging
import os
import shutil
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

# Shared application logger; modules import this instead of creating their own.
logger = logging.getLogger("oneapi")

_configured = False


def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """The zone named by LOG_TIMEZONE, or the host's local zone when unset or unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except ZoneInfoNotFoundError:
            pass
    return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc


class LocalTimezoneFormatter(logging.Formatter):
    def __init__(self, fmt: str | None = None, *, timezone_name: str | None = None) -> None:
        super().__init__(fmt)
        self.tz = resolve_timezone(timezone_name)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(timespec="milliseconds")


class DailyFolderFileHandler(logging.FileHandler):
    """
    File handler writing to ``<log_dir>/<YYYY-MM-DD>/<filename>``.

    The date is checked on every record, so the first record after midnight
    switches to a new folder. Only the newest `backup_days` date folders are
    kept; `backup_days <= 0` keeps everything.
    """

    def __init__(
        self,
        log_dir: Path,
        filename: str = "app.log",
        *,
        backup_days: int = 7,
        timezone_name: str | None = None,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.filename = filename
        self.backup_days = backup_days
        self.tz = resolve_timezone(timezone_name)
        self.current_day = self._today()
        super().__init__(self._path_for(self.current_day), encoding="utf-8", delay=True)
        self._prune()

    def _today(self) -> datetime.date:
        return datetime.datetime.now(tz=self.tz).date()

    def _path_for(self, day: datetime.date) -> Path:
        folder = self.log_dir / day.isoformat()
        folder.mkdir(parents=True, exist_ok=True)
        return folder / self.filename

    def _prune(self) -> None:
        if self.backup_days <= 0:
            return
        dated: list[tuple[datetime.date, Path]] = []
        for entry in self.log_dir.iterdir():
            if not entry.is_dir():
                continue
            try:
                dated.append((datetime.date.fromisoformat(entry.name), entry))
            except ValueError:
                continue
        dated.sort()
        for _, folder in dated[: -self.backup_days]:
            shutil.rmtree(folder, ignore_errors=True)

    def emit(self, record: logging.LogRecord) -> None:
        today = self._today()
        if today != self.current_day:
            # Called under the handler lock, so swapping the stream is safe.
            self.current_day = today
            if self.stream is not None:
                self.stream.close()
                self.stream = None
            self.baseFilename = os.fspath(self._path_for(today).absolute())
            self._prune()
        super().emit(record)


def _resolve_log_dir(value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    # Relative to the project root (oneapi/ -> ..).
    return Path(__file__).resolve().parents[1] / path


def setup_logging() -> None:
    """Attach the daily file handler and, if the root has none, a console handler."""
    global _configured
    if _configured:
        return

    level = logging.getLevelName(str(settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO
    formatter = LocalTimezoneFormatter(LOG_FORMAT, timezone_name=settings.log_timezone)

    file_handler = DailyFolderFileHandler(
        _resolve_log_dir(settings.log_dir),
        backup_days=settings.log_backup_days,
        timezone_name=settings.log_timezone,
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    logger.setLevel(level)

    root = logging.getLogger()
    if not root.handlers:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)
    root.setLevel(level)

    _configured = True


__all__ = [
    "DailyFolderFileHandler",
    "LOG_FORMAT",
    "LocalTimezoneFormatter",
    "logger",
    "resolve_timezone",
    "setup_logging",
]
