"""HighlightKeeper - persistent text highlights for HTML documents.

Highlights are stored as anchors that describe a selection both by its
position in the document tree and by its text, so they can be restored
after the document changes.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Handlers installed by setup_logging, replaced on the next call
_installed_handlers: list[logging.Handler] = []


def setup_logging(
    log_dir: Path | None = None, *, console_level: str = "WARNING"
) -> Path:
    """Send engine logs to a per-process rotating file and to stderr.

    The file captures everything down to DEBUG, including per-anchor
    resolution stages.  The console only shows *console_level* and above,
    since CLI commands report their own results through rich.  Calling this
    again swaps out the handlers from the previous call.

    Returns:
        Path of the log file.
    """
    log_dir = log_dir or Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"highlightkeeper.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    while _installed_handlers:
        stale = _installed_handlers.pop()
        root_logger.removeHandler(stale)
        stale.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    for handler in (file_handler, console_handler):
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    logging.getLogger(__name__).debug("Writing logs to %s", log_file.absolute())
    return log_file
