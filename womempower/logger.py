"""
WomEmpower DAO logging.

One process-wide configuration, applied lazily the first time a module
asks for a logger:

  - console: a rich ``RichHandler`` on stderr that colours proposal ids,
    heights, vote choices and error kinds (plain ``StreamHandler`` when
    LOG_CONSOLE_HIGHLIGHTING is off)
  - file: optional ``RotatingFileHandler`` under ``logs/`` when
    LOG_FILE_OUTPUT is on

Titles, descriptions and identities are caller-supplied, so every record
passes through ``TerminalSafeFormatter`` before it is written anywhere.

Usage:
    >>> from womempower.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #1 created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "womempower.log"

DAO_THEME = Theme({
    "dao.level_debug":   "dim",
    "dao.level_info":    "bold green",
    "dao.level_warning": "bold yellow",
    "dao.level_error":   "bold red",
    "dao.logger_name":   "magenta",
    "dao.proposal":      "bold cyan",
    "dao.height":        "cyan",
    "dao.choice_yes":    "bold green",
    "dao.choice_no":     "bold red",
    "dao.error_kind":    "bold red",
    "dao.arrow":         "bold yellow",
    "dao.timestamp":     "dim cyan",
})


def _level_number(level) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def _warn(message: str):
    # The logging system is not up yet when these checks run
    print(f"womempower.logger: {message}", file=sys.stderr)


class LogManager:
    """
    Singleton owner of the root logger configuration.

    ``configure`` runs at most once; later calls are no-ops. Use
    ``set_level`` to change verbosity afterwards.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    # ── Format checks ─────────────────────────────────────────────────

    @staticmethod
    def checked_format(log_format) -> str:
        """Return *log_format* if it renders a record, else the default."""
        fallback = str(LOG_FORMAT.default())
        if not log_format:
            return fallback
        probe = logging.LogRecord("probe", logging.INFO, "", 0, "probe", (), None)
        try:
            rendered = logging.Formatter(fmt=str(log_format)).format(probe)
        except (ValueError, KeyError, TypeError) as e:
            _warn(f"invalid LOG_FORMAT ({e}), using default")
            return fallback
        if re.search(r"%\(\w+\)\w", rendered):
            _warn("LOG_FORMAT left placeholders unexpanded, using default")
            return fallback
        return str(log_format)

    @staticmethod
    def checked_date_format(date_format) -> str:
        """Return *date_format* if it contains a strftime directive, else the default."""
        fallback = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return fallback
        date_format = str(date_format)
        try:
            rendered = time.strftime(date_format, time.gmtime(0))
        except ValueError as e:
            _warn(f"invalid LOG_DATE_FORMAT ({e}), using default")
            return fallback
        if rendered == date_format:
            _warn("LOG_DATE_FORMAT has no date directives, using default")
            return fallback
        return date_format

    # ── Handlers ──────────────────────────────────────────────────────

    def _formatter(self) -> logging.Formatter:
        formatter = TerminalSafeFormatter(
            fmt=self.checked_format(LOG_FORMAT),
            datefmt=self.checked_date_format(LOG_DATE_FORMAT) + " UTC",
        )
        formatter.converter = time.gmtime
        return formatter

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=DAO_THEME, highlight=False, stderr=True),
            highlighter=DAOLogHighlighter(),
            keywords=[],
            markup=False,
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
            show_time=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger.

        Args:
            log_level: DEBUG, INFO, ...; defaults to LOG_LEVEL from .env.
            log_file: rotating log path; defaults to ``logs/womempower.log``.
            console_output: attach the console handler.
            file_output: attach the file handler; defaults to LOG_FILE_OUTPUT.
        """
        with self._lock:
            if self._configured:
                return

            level = _level_number(log_level or LOG_LEVEL)
            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            formatter = self._formatter()
            root = logging.getLogger()
            root.handlers.clear()
            root.setLevel(level)
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def set_level(self, log_level: str) -> None:
        """Change the level of the root logger and every handler on it."""
        level = _level_number(log_level)
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """Formatter that strips ANSI escapes and control characters (CWE-117)."""

    _ansi_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # Control characters except tab and newline
    _control_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_re.sub("", cls._ansi_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class DAOLogHighlighter(RegexHighlighter):
    """Colours governance log lines."""

    base_style = "dao."
    highlights = [
        r"(?P<arrow>→)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\b(?:ERROR|CRITICAL)\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<height>\bheight=\d+\b)",
        r"(?P<choice_yes>\bYES\b)",
        r"(?P<choice_no>\bNO\b)",
        r"(?P<error_kind>\b[A-Z]+(?:_[A-Z]+)+\b)",
        r"(?P<timestamp>^.*?UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Adjust verbosity after configuration (used by the CLI)."""
    _manager.set_level(log_level)
