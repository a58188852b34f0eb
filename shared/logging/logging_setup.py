"""Logging for the API server and the sync runner.

Console output is colored per message, the optional file handler writes
plain text to <ROOT_DIR>/logs/app.log. Timestamps are rendered in TIMEZONE.
"""

from datetime import datetime
from logging import Logger
import logging
import logging.config
import os

from pytz import timezone

LOGGER_NAME = "chat_rag_bridge"

# chatty third party loggers, only shown with LOG_LEVEL=debug
QUIET_LOGGERS = ("httpx", "httpcore", "tiktoken")

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
    "blue":    "\033[34m",
}
_LEVEL_PREFIX = {
    logging.WARNING: "⚠️ ",
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
}


def _get_level() -> int:
    return logging.DEBUG if os.getenv("LOG_LEVEL", "info").lower() == "debug" else logging.INFO


class TimezoneFormatter(logging.Formatter):
    """Formats timestamps in a fixed timezone and prefixes warnings and errors with a marker."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record) -> str:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed %-format in a third party call
            message = str(record.msg)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(TimezoneFormatter):
    """Console formatter. Colors a line when the record carries a color attribute."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Wraps a Logger and adds a color= keyword to the log methods.

    Usage::

        logger.info("Indexed %d messages.", count, color="green")
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _log(self, level: int, msg, args: tuple, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs = {**kwargs, "extra": {**(kwargs.get("extra") or {}), "color": color}}
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.DEBUG, msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.INFO, msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.WARNING, msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.CRITICAL, msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, {"exc_info": True, **kwargs})

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        self._log(level, msg, args, color, kwargs)

    def __getattr__(self, name):
        # setLevel, handlers, isEnabledFor, ... (tenacity's before_sleep_log calls .log)
        return getattr(self._logger, name)


def setup_logging() -> ColorLogger:
    """Configure the root logger and return the application logger.

    Environment:
        LOG_LEVEL:   "debug" or "info" (default).
        TIMEZONE:    Timestamp timezone, default Europe/Berlin.
        LOG_TO_FILE: "false" disables the file handler (default true).
        ROOT_DIR:    Base directory of the logs folder, default the working directory.
    """
    level = _get_level()
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    log_to_file = os.getenv("LOG_TO_FILE", "true").lower() not in ("false", "0", "no", "off")
    line_format = "%(asctime)s - %(levelname)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    handlers: dict = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "colored",
            "level": level,
            "stream": "ext://sys.stdout",
        },
    }
    if log_to_file:
        log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "plain",
            "level": level,
            "filename": os.path.join(log_dir, "app.log"),
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"()": TimezoneFormatter, "format": line_format, "datefmt": datefmt, "tz_name": tz_name},
            "colored": {"()": ColoredFormatter, "format": line_format, "datefmt": datefmt, "tz_name": tz_name},
        },
        "handlers": handlers,
        "root": {"handlers": list(handlers), "level": level},
    })

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
