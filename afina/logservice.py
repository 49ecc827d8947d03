"""Logging service that builds named loggers from appender definitions."""

from __future__ import annotations

import datetime
import logging
import logging.handlers
import os
import re
import sys
from dataclasses import dataclass, field
from enum import Enum, auto

_TRACE_LEVEL = 5
logging.addLevelName(_TRACE_LEVEL, "TRACE")

_LOG_PID = 0x01

DEFAULT_PATTERN = "[%Y-%m-%d %H:%M:%S.%e] [%n] [%l] %v"


class AppenderType(Enum):
    """Where an appender sends its lines."""

    STDOUT = auto()
    STDERR = auto()
    FILE = auto()
    DAILY = auto()
    SIZED = auto()
    SYSLOG = auto()


@dataclass
class Appender:
    """Destination of log lines."""

    type: AppenderType = AppenderType.STDOUT
    color: bool = False
    file: str = ""
    rotate_at_hours: int = 0
    rotate_at_mins: int = 0
    rotate_at_size: int = 10 * 1024 * 1024
    history_to_keep: int = 5
    ident: str = "afina"
    option: int = 0
    facility: int = logging.handlers.SysLogHandler.LOG_USER


class LoggerLevel(Enum):
    """Threshold below which a logger drops messages."""

    TRACE = _TRACE_LEVEL
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


@dataclass
class LoggerConfig:
    """A named logger: its level, the appenders it writes to and its line pattern."""

    level: LoggerLevel = LoggerLevel.INFO
    appenders: list[str] = field(default_factory=list)
    format: str = DEFAULT_PATTERN


@dataclass
class Config:
    """Appenders and loggers, each by name."""

    appenders: dict[str, Appender] = field(default_factory=dict)
    loggers: dict[str, LoggerConfig] = field(default_factory=dict)


_LEVEL_NAMES = {
    _TRACE_LEVEL: "trace",
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "critical",
}

_STRFTIME_FLAGS = frozenset("YmdHMSyaAbBp")
_FLAG = re.compile(r"%(.)", re.DOTALL)
_MDC = re.compile(r"%%|%X\{([^}]*)\}")
_EXCEPTION_FORMATTER = logging.Formatter()


def _level_name(record: logging.LogRecord) -> str:
    return _LEVEL_NAMES.get(record.levelno, record.levelname.lower())


def _render(pattern: str, record: logging.LogRecord) -> str:
    moment = datetime.datetime.fromtimestamp(record.created).astimezone()

    def substitute(match: re.Match[str]) -> str:
        flag = match.group(1)
        if flag == "v":
            return record.getMessage()
        if flag == "n":
            return record.name
        if flag == "l":
            return _level_name(record)
        if flag == "L":
            return _level_name(record)[:1].upper()
        if flag == "t":
            return str(record.thread)
        if flag == "P":
            return str(record.process)
        if flag == "e":
            return f"{int(record.msecs):03d}"
        if flag == "z":
            offset = moment.strftime("%z")
            return f"{offset[:3]}:{offset[3:]}"
        if flag in _STRFTIME_FLAGS:
            return moment.strftime("%" + flag)
        if flag == "%":
            return "%"
        return match.group(0)

    line = _FLAG.sub(substitute, pattern)
    if record.exc_info:
        line += "\n" + _EXCEPTION_FORMATTER.formatException(record.exc_info)
    return line


def _substitute_mdc(pattern: str, mdc: dict[str, str]) -> str:
    def substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key is None or key not in mdc:
            return match.group(0)
        return mdc[key].replace("%", "%%")

    return _MDC.sub(substitute, pattern)


class _PatternLogger(logging.Logger):
    """Logger that renders each record with its own pattern before handing it on."""

    def __init__(self, name: str, level: int, pattern: str) -> None:
        super().__init__(name, level)
        self.pattern = pattern
        self.propagate = False

    def makeRecord(self, *args, **kwargs) -> logging.LogRecord:
        record = super().makeRecord(*args, **kwargs)
        record.rendered = _render(self.pattern, record)
        return record


class _RenderedFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rendered = getattr(record, "rendered", None)
        return rendered if rendered is not None else super().format(record)


class _ColorFormatter(_RenderedFormatter):
    _COLORS = {
        _TRACE_LEVEL: "\x1b[37m",
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m\x1b[1m",
        logging.ERROR: "\x1b[31m\x1b[1m",
        logging.CRITICAL: "\x1b[1m\x1b[41m",
    }
    _RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self._COLORS.get(record.levelno)
        return f"{color}{line}{self._RESET}" if color else line


class ReopenableFileHandler(logging.FileHandler):
    """File handler whose file can be reopened at any time, e.g. after log rotation."""

    def __init__(self, filename: str | os.PathLike[str], truncate: bool = False) -> None:
        super().__init__(filename, mode="w" if truncate else "a", encoding="utf-8")

    def reopen(self) -> None:
        """Close the file and open it again at the same path, appending."""
        self.acquire()
        try:
            if self.stream is not None:
                self.stream.close()
            self.mode = "a"
            self.stream = self._open()
        finally:
            self.release()


def _build_handler(appender: Appender) -> logging.Handler:
    handler: logging.Handler
    if appender.type is AppenderType.STDOUT:
        handler = logging.StreamHandler(sys.stdout)
    elif appender.type is AppenderType.STDERR:
        handler = logging.StreamHandler(sys.stderr)
    elif appender.type is AppenderType.FILE:
        handler = ReopenableFileHandler(appender.file)
    elif appender.type is AppenderType.DAILY:
        handler = logging.handlers.TimedRotatingFileHandler(
            appender.file,
            when="midnight",
            atTime=datetime.time(appender.rotate_at_hours, appender.rotate_at_mins),
            encoding="utf-8",
        )
    elif appender.type is AppenderType.SIZED:
        handler = logging.handlers.RotatingFileHandler(
            appender.file,
            maxBytes=appender.rotate_at_size,
            backupCount=appender.history_to_keep,
            encoding="utf-8",
        )
    elif appender.type is AppenderType.SYSLOG:
        if os.path.exists("/dev/log"):
            handler = logging.handlers.SysLogHandler(address="/dev/log", facility=appender.facility)
        else:
            handler = logging.handlers.SysLogHandler(facility=appender.facility)
        if appender.option & _LOG_PID:
            handler.ident = f"{appender.ident}[{os.getpid()}]: "
        else:
            handler.ident = f"{appender.ident}: "
    else:
        raise ValueError("Invalid appender type")

    colored = appender.color and appender.type in (AppenderType.STDOUT, AppenderType.STDERR)
    handler.setFormatter(_ColorFormatter() if colored else _RenderedFormatter())
    return handler


class LoggingService:
    """Provides loggers to the rest of the system."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._loggers: dict[str, _PatternLogger] = {}
        self._handlers: list[logging.Handler] = []
        self._root: _PatternLogger | None = None

    def start(self) -> None:
        """Build the appenders and loggers; a logger named "root" is required."""
        handlers = {name: _build_handler(appender) for name, appender in self._config.appenders.items()}
        loggers: dict[str, _PatternLogger] = {}
        try:
            for name, logger_config in self._config.loggers.items():
                try:
                    chosen = [handlers[appender] for appender in logger_config.appenders]
                except KeyError as exc:
                    raise ValueError(f"Unknown appender {exc.args[0]!r} for logger {name!r}") from None
                logger = _PatternLogger(name, logger_config.level.value, logger_config.format)
                for handler in chosen or [logging.NullHandler()]:
                    logger.addHandler(handler)
                loggers[name] = logger

            root = loggers.get("root")
            if root is None:
                raise RuntimeError("Root logger not configured")
        except Exception:
            for handler in handlers.values():
                handler.close()
            raise

        self._handlers = list(handlers.values())
        self._loggers = loggers
        self._root = root

    def stop(self) -> None:
        """Flush and close every appender and forget the loggers."""
        for handler in self._handlers:
            handler.flush()
            handler.close()
        self._handlers = []
        self._loggers = {}
        self._root = None

    def select(self, name: str) -> logging.Logger:
        """Return the logger of that name, of its nearest dotted parent, or the root one."""
        if self._root is None:
            raise RuntimeError("logging service is not started")
        candidate = name
        while candidate:
            logger = self._loggers.get(candidate)
            if logger is not None:
                return logger
            candidate = candidate.rpartition(".")[0]
        return self._root

    def create(self, name: str, mdc: dict[str, str]) -> logging.Logger:
        """Return a new logger like select(name) with %X{key} in its pattern replaced from mdc."""
        base = self.select(name)
        assert isinstance(base, _PatternLogger)
        logger = _PatternLogger(base.name, base.level, _substitute_mdc(base.pattern, mdc))
        for handler in base.handlers:
            logger.addHandler(handler)
        return logger

    def reopen_all(self) -> None:
        """Reopen every reopenable file used by any logger."""
        seen: set[int] = set()
        for logger in self._loggers.values():
            for handler in logger.handlers:
                if id(handler) in seen:
                    continue
                seen.add(id(handler))
                if isinstance(handler, ReopenableFileHandler):
                    handler.reopen()

    def __enter__(self) -> LoggingService:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()