import enum
import logging
import os
import sys
import threading
from typing import Optional, TextIO

from .interfaces import Logger


_RESET = "\x1b[0m"
_COLORS = {
    logging.DEBUG: "\x1b[35m",   # magenta
    logging.INFO: "\x1b[32m",    # green
    logging.WARNING: "\x1b[33m", # yellow
    logging.ERROR: "\x1b[31m",   # red
    logging.CRITICAL: "\x1b[91m", # bright red
}


class LogLevel(enum.IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3

    @classmethod
    def parse(cls, value) -> "LogLevel":
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        key = str(value).strip().upper()
        if key in ("WARNING",):
            key = "WARN"
        if key in ("ERR",):
            key = "ERROR"
        return cls[key]

    def to_logging(self) -> int:
        return _STDLIB_LEVELS[self]


_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ColorFormatter(logging.Formatter):
    def __init__(self, debug: bool = False, color: Optional[bool] = None, stream: Optional[TextIO] = None):
        fmt = (
            "%(asctime)s | %(levelname)s | %(name)s"
            + (" | %(threadName)s" if debug else "")
            + " | %(message)s"
        )
        super().__init__(fmt=fmt, datefmt="%H:%M:%S")
        self.debug = debug
        self.color = color
        self.stream = stream

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        # Color only the levelname portion for readability
        color = _COLORS.get(record.levelno)
        if color and self._use_color():
            msg = msg.replace(record.levelname, f"{color}{record.levelname}{_RESET}", 1)
        return msg

    def _use_color(self) -> bool:
        if self.color is not None:
            return self.color
        return _stream_supports_color(self.stream or sys.stdout)


def _stream_supports_color(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty()) and os.environ.get("NO_COLOR") is None


class SimLogger(Logger):
    """
    Reference diagnostic sink.

    Writes one line per call to `stream` (stdout by default), tagged with the
    severity and an optional caller prefix. Messages below the configured
    threshold are dropped. Writes are serialized with a lock so lines from
    concurrent threads never interleave.

    Each instance owns a private stdlib logger, so two sinks never share
    handlers even when they use the same name.
    """

    def __init__(self,
                 name: str = "simenv",
                 level: LogLevel = LogLevel.INFO,
                 stream: Optional[TextIO] = None,
                 color: Optional[bool] = None,
                 debug: bool = False):
        self._level = LogLevel.parse(level)
        self._write_lock = threading.Lock()
        self._logger = logging.Logger(name, level=logging.DEBUG)
        self._logger.propagate = False
        self._handler = logging.StreamHandler(stream=stream or sys.stdout)
        self._handler.setFormatter(ColorFormatter(debug=debug, color=color, stream=stream))
        self._logger.addHandler(self._handler)

    @property
    def name(self) -> str:
        return self._logger.name

    def set_level(self, level: LogLevel) -> None:
        self._level = LogLevel.parse(level)

    def get_level(self) -> LogLevel:
        return self._level

    def is_enabled_for(self, level: LogLevel) -> bool:
        return LogLevel.parse(level) >= self._level

    def log(self, msg: str, level: LogLevel, prefix: str = "") -> None:
        level = LogLevel.parse(level)
        if level < self._level:
            return
        text = f"[{prefix}] {msg}" if prefix else str(msg)
        with self._write_lock:
            self._logger.log(level.to_logging(), text)

    def log_err(self, msg: str, prefix: str = "") -> None:
        self.log(msg, LogLevel.ERROR, prefix)

    def log_warn(self, msg: str, prefix: str = "") -> None:
        self.log(msg, LogLevel.WARN, prefix)

    def log_info(self, msg: str, prefix: str = "") -> None:
        self.log(msg, LogLevel.INFO, prefix)

    def log_debug(self, msg: str, prefix: str = "") -> None:
        self.log(msg, LogLevel.DEBUG, prefix)


_default_logger: Optional[SimLogger] = None
_default_lock = threading.Lock()


def default_logger() -> SimLogger:
    """Process-wide SimLogger, constructed on first use."""
    global _default_logger
    if _default_logger is None:
        with _default_lock:
            if _default_logger is None:
                _default_logger = SimLogger()
    return _default_logger


_configured = False
_init_logged = False


def setup_logging(debug: bool = False) -> logging.Logger:
    global _configured
    root = logging.getLogger()
    level = logging.DEBUG if debug else logging.INFO

    if not _configured:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(ColorFormatter(debug=debug))
        root.addHandler(handler)
        _configured = True
    else:
        # Update formatter debug flag on existing handlers
        for h in root.handlers:
            if isinstance(h.formatter, ColorFormatter):  # type: ignore[attr-defined]
                h.setFormatter(ColorFormatter(debug=debug))

    root.setLevel(level)

    # trimesh is chatty at INFO
    logging.getLogger("trimesh").setLevel(logging.WARNING)

    logger = logging.getLogger("simenv")
    global _init_logged
    if not _init_logged:
        logger.debug("Logging initialized (debug=%s)", debug)
        _init_logged = True
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "simenv")
