import os
import logging
from logging.handlers import RotatingFileHandler
import structlog
from structlog.stdlib import ProcessorFormatter, BoundLogger, add_logger_name
from structlog.processors import (
    JSONRenderer,
    TimeStamper,
    add_log_level,
    StackInfoRenderer,
    format_exc_info,
)
from rich.logging import RichHandler
from structlog.dev import ConsoleRenderer


XDG_STATE_HOME = os.environ.get("XDG_STATE_HOME") or os.path.expanduser(
    "~/.local/state"
)
APP_DIR = "catgrid"

LOG_FILE_PATH = os.path.join(XDG_STATE_HOME, APP_DIR, "catgrid.log")

LOGGER_NAME = None

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class SpamFilter(logging.Filter):
    """Lets only the first of consecutive 'request dropped' lines through."""

    _dropped_count = 0

    def filter(self, record):
        message = record.getMessage()
        if "Reorder request dropped" in message:
            SpamFilter._dropped_count += 1
            return SpamFilter._dropped_count == 1
        if "triggering reorder" not in message:
            SpamFilter._dropped_count = 0
        return True


def level_from_name(name, default: int = logging.INFO) -> int:
    if isinstance(name, int):
        return name
    return LEVELS.get(str(name).upper(), default)


def setup_logging(
    level: int = logging.INFO, log_file_path: str = LOG_FILE_PATH
) -> BoundLogger:
    shared_processors = [
        add_log_level,
        TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        StackInfoRenderer(),
        format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors
        + [
            add_logger_name,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    std_logger = logging.getLogger(LOGGER_NAME)
    std_logger.setLevel(level)
    std_logger.propagate = False
    for handler in std_logger.handlers[:]:
        std_logger.removeHandler(handler)
    spam_filter = SpamFilter()
    os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file_path,
        maxBytes=1024 * 1024,
        backupCount=2,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.addFilter(spam_filter)
    json_formatter = ProcessorFormatter(
        foreign_pre_chain=shared_processors + [add_logger_name],
        processor=JSONRenderer(),
    )
    file_handler.setFormatter(json_formatter)
    std_logger.addHandler(file_handler)
    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_path=False,
        show_time=False,
    )
    console_handler.setLevel(level)
    console_handler.addFilter(spam_filter)
    console_formatter_final = ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processor=ConsoleRenderer(colors=False),
        fmt="%(message)s",
    )
    console_handler.setFormatter(console_formatter_final)
    std_logger.addHandler(console_handler)
    return structlog.get_logger(LOGGER_NAME)
