import datetime
import gzip
import logging
import os
import shutil
from typing import Optional

from rich.logging import RichHandler

from proxy_setup.config import MAX_LOG_SIZE
from proxy_setup.ui import console, print_warning

LOGGER_NAME = "proxy_setup"
FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def rotate_log(log_file: str, max_size: int = MAX_LOG_SIZE) -> Optional[str]:
    """Gzip the log aside when it has grown past ``max_size`` bytes."""
    if not os.path.exists(log_file) or os.path.getsize(log_file) <= max_size:
        return None
    ts = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
    rotated = f"{log_file}.{ts}.gz"
    with open(log_file, "rb") as fin, gzip.open(rotated, "wb") as fout:
        shutil.copyfileobj(fin, fout)
    open(log_file, "w").close()
    return rotated


def setup_logging(
    log_file: Optional[str] = None,
    debug: bool = False,
    max_size: int = MAX_LOG_SIZE,
) -> logging.Logger:
    """
    Configure the package logger with a rich console handler and a file handler.

    The console handler shares the themed console so log lines and status
    output interleave cleanly. An unwritable log location downgrades to
    console-only logging.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    rich_handler = RichHandler(
        console=console,
        markup=False,
        rich_tracebacks=True,
        show_path=False,
    )
    rich_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.addHandler(rich_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            rotate_log(log_file, max_size)
            fh = logging.FileHandler(log_file)
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
            logger.addHandler(fh)
        except OSError as e:
            print_warning(f"Logging to {log_file} failed: {e}")
            print_warning("Continuing without file logging...")
    return logger
