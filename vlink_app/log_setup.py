import logging
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Union

from . import __version__

LOGGER_NAME = "vlink_app"
SHORT_FORMAT = '%(levelname)-8s: %(message)s'
VERBOSE_FORMAT = '%(asctime)s %(levelname)-8s [%(name)s:%(lineno)d] %(message)s'


def _close_handlers(log: logging.Logger) -> None:
    for handler in log.handlers[:]:
        log.removeHandler(handler)
        handler.close()


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = VERBOSE_FORMAT if level <= logging.DEBUG else SHORT_FORMAT
    handler.setFormatter(logging.Formatter(fmt, datefmt='%H:%M:%S'))
    return handler


def _file_handler(log_file_path: Path) -> logging.Handler:
    # source names are not always valid UTF-8; keep their bytes readable in the log
    handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8', errors='backslashreplace')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S%z'))
    return handler


def setup_logging(log_level_console: int = logging.INFO, log_file: Optional[Union[str, Path]] = None,
                  quiet: bool = False) -> logging.Logger:
    """
    Configures the application logger tree for one run.

    The console handler goes to stderr; `quiet` raises it to ERROR so only
    failures reach the terminal. With `log_file`, every link, skip, collision
    and undo removal is also appended to that file at DEBUG, preceded by a
    session header with the command line.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(logging.DEBUG)
    _close_handlers(log)

    if quiet:
        log_level_console = max(log_level_console, logging.ERROR)
    log.addHandler(_console_handler(log_level_console))

    if log_file:
        try:
            log_file_path = Path(log_file).expanduser().resolve()
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            log.addHandler(_file_handler(log_file_path))
        except OSError as e:
            log.error(f"Failed to configure file logging to '{log_file}': {e}")
        else:
            log.info(f"--- Log session started: {datetime.now(timezone.utc).isoformat()} (vlink {__version__}) ---")
            log.info(f"Command: {' '.join(sys.argv)}")
    return log
