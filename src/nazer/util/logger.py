"""
Logging for Nazer.

Components call ``get_logger("<component>")`` and get a child of the
``nazer`` logger. The parent is configured once per process with a console
handler that prints through prompt_toolkit, so log lines do not break the
interactive prompt, and a size-rotated file under ``logs/``.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from datetime import datetime
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText

ROOT_LOGGER_NAME = "nazer"

LOGS_DIR: Path = Path(os.environ.get("NAZER_LOG_DIR") or Path(__file__).parents[3] / "logs").resolve()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H-%M-%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

LEVEL_STYLES = {
    logging.DEBUG: "ansicyan",
    logging.INFO: "ansigreen",
    logging.WARNING: "ansiyellow",
    logging.ERROR: "ansired",
    logging.CRITICAL: "ansired bold",
}

# python-telegram-bot and httpx log every long-poll round trip
NOISY_LOGGERS = ("telegram", "httpx", "httpcore", "apscheduler", "aiosqlite")


class PromptToolkitHandler(logging.Handler):
    """Prints records with ``print_formatted_text``, styled by level when ``colored``."""

    def __init__(self, colored: bool = False) -> None:
        super().__init__()
        self.colored = colored

    def style_for(self, record: logging.LogRecord) -> str:
        return LEVEL_STYLES.get(record.levelno, "") if self.colored else ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(FormattedText([(self.style_for(record), self.format(record))]))
        except Exception:
            self.handleError(record)


def session_log_path(started: datetime | None = None) -> Path:
    """File that a session started at ``started`` writes to."""
    return LOGS_DIR / f"nazer-{(started or datetime.now()).strftime(DATE_FORMAT)}.log"


def configure_logging(colored: bool | None = None) -> logging.Logger:
    """
    Attach the console and file handlers to the ``nazer`` logger.

    Safe to call repeatedly; only the first call adds handlers. Colors
    default to on when stderr is a terminal.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    if colored is None:
        colored = bool(sys.stderr is not None and sys.stderr.isatty())
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = PromptToolkitHandler(colored=colored)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        session_log_path(), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    root.setLevel(logging.DEBUG)
    root.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for one component, e.g. ``get_logger("restore_scheduler")``."""
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """
    Log uncaught exceptions; installed as ``sys.excepthook`` by ``main``.

    KeyboardInterrupt goes to the default hook so Ctrl+C still exits normally.
    """
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    get_logger("uncaught").critical(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )
