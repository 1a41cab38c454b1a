"""
DAO Treasury Logging

Every module logs through ``get_logger(__name__)``. The first call installs
the root handlers: a rich console on stderr that colours proposal ids,
addresses and status changes, and optionally a rotating file under
``logs/``. Levels and formats come from ``.env`` (see constants.py).

    >>> from daotreasury.logger import get_logger
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

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "daotreasury.log"

LEDGER_THEME = Theme({
    "dao.address":       "cyan",
    "dao.amount":        "bold white",
    "dao.arrow":         "bold yellow",
    "dao.rejected":      "bold yellow",
    "dao.logger_name":   "magenta",
    "dao.proposal":      "bold magenta",
    "dao.status_cancel": "bold red",
    "dao.status_final":  "bold green",
    "dao.timestamp":     "bold cyan",
})


class LedgerLogHighlighter(RegexHighlighter):
    """Highlights proposal ids, addresses, amounts and transitions."""

    base_style = "dao."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<amount>\bamount=\S+)",
        r"(?P<arrow>→)",
        r"(?P<rejected>Rejected \[\w+\])",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<status_cancel>\bCANCELLED\b)",
        r"(?P<status_final>\bFINALIZED\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escapes and control characters from formatted records.

    Proposal names and descriptions are caller-supplied text and end up in
    log lines verbatim.
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
        r"|[\x00-\x08\x0B-\x1F\x7F]"
    )

    def format(self, record: logging.LogRecord) -> str:
        return self._unsafe_re.sub("", super().format(record))


def _make_formatter() -> logging.Formatter:
    """Formatter from .env settings, falling back to the defaults if they don't parse."""
    log_format, date_format = str(LOG_FORMAT), str(LOG_DATE_FORMAT)
    try:
        formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
        formatter.format(logging.makeLogRecord({"msg": "check"}))
    except (ValueError, KeyError, TypeError) as e:
        print(f"Invalid LOG_FORMAT / LOG_DATE_FORMAT ({e}), using defaults", file=sys.stderr)
        formatter = TerminalSafeFormatter(
            fmt=str(LOG_FORMAT.default()),
            datefmt=str(LOG_DATE_FORMAT.default()) + " UTC",
        )
    formatter.converter = time.gmtime
    return formatter


class LogManager:
    """Installs the root handlers once per process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._configured = False

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Args:
            log_level:      DEBUG, INFO, ... (default: LOG_LEVEL)
            log_file:       Rotating log file (default: logs/daotreasury.log)
            console_output: Attach the stderr handler
            file_output:    Attach the file handler (default: LOG_FILE_OUTPUT)
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            formatter = _make_formatter()

            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()

            handlers = []
            if console_output and LOG_CONSOLE_HIGHLIGHTING:
                handlers.append(RichHandler(
                    console=Console(theme=LEDGER_THEME, highlight=False, stderr=True),
                    highlighter=LedgerLogHighlighter(),
                    keywords=[],
                    rich_tracebacks=True,
                    show_path=False,
                    show_time=False,
                    show_level=False,
                    markup=False,
                ))
            elif console_output:
                handlers.append(logging.StreamHandler(sys.stderr))

            if LOG_FILE_OUTPUT if file_output is None else file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures logging on first use."""
    return _manager.get_logger(name)
