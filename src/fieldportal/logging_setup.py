# src/fieldportal/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while task lists are printed to it:
    - the lookup cache and the key/value store log every batch and write,
      so only their WARNING+ records reach the console
    - other fieldportal loggers pass (the handler level still applies)
    - third-party loggers (httpx, httpcore, asyncio) only for ERROR+
    """

    quiet_prefixes = ("fieldportal.lookups.", "fieldportal.storage.")

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("fieldportal."):
            return record.levelno >= logging.ERROR
        if name.startswith(self.quiet_prefixes):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/fieldportal",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: full logs for debugging

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "fieldportal.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    # The console view stamps its own lines; the file needs full timestamps.
    console_fmt = logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s")
    file_fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(console_fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(file_fmt)
    root.addHandler(fh)

    # Request lines from the transport are too chatty even for the log file.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return log_file
