"""Verbosity-gated console logger.

Levels follow env_logger conventions: ``error`` (default) shows only
failures, ``trace`` shows everything including raw tool output.  Errors
go to stderr, everything else to stdout.

Usage:
    from sqlpack.config import LogSettings, LogLevel
    from sqlpack.supervisor import RunLogger

    log = RunLogger(LogSettings(level=LogLevel.INFO))
    log.section("EXPORTING DATA")
    log.success("Exported: dbo.Users.dat")
    log.summary("Tables imported: 12")
"""

import sys
from collections import deque
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.text import Text

from sqlpack.config.models import LogLevel, LogSettings

# (prefix, style) per message kind
_ERROR = ("✗ [ERROR]", "red")
_WARN = ("⚠ [WARN]", "bold yellow")
_INFO = ("[INFO]", "blue")
_SUCCESS = ("✓", "green")
_DEBUG = ("[DEBUG]", "white")
_TRACE = ("[TRACE]", "magenta")

_CALLER_TAGGED = {LogLevel.DEBUG, LogLevel.TRACE}


class RunLogger:
    """Leveled logger writing through rich consoles.

    Args:
        settings: Immutable log settings for the whole process.
        console: Console for stdout (injectable for tests).
        err_console: Console for stderr (injectable for tests).
    """

    def __init__(
        self,
        settings: LogSettings | None = None,
        console: Console | None = None,
        err_console: Console | None = None,
    ):
        self.settings = settings or LogSettings()
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    @property
    def level(self) -> LogLevel:
        return self.settings.level

    def enabled(self, level: LogLevel) -> bool:
        """True when a message at ``level`` would be emitted."""
        return self.settings.level >= level

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _timestamp(self) -> str:
        if not self.settings.timestamp:
            return ""
        return f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] "

    def _emit(self, level: LogLevel, prefix: str, style: str, message: str) -> None:
        if not self.enabled(level):
            return
        line = Text(self._timestamp())
        line.append(f"{prefix} {message}" if prefix else message, style=style)
        target = self.err_console if level is LogLevel.ERROR else self.console
        target.print(line)

    def log(self, level: LogLevel, message: str, caller: str | None = None) -> None:
        """Emit ``message`` iff the configured level is at least ``level``.

        Debug and trace lines name the function that logged them
        (``[DEBUG:<caller>]``) when ``caller`` is given.
        """
        prefix, style = {
            LogLevel.ERROR: _ERROR,
            LogLevel.WARN: _WARN,
            LogLevel.INFO: _INFO,
            LogLevel.DEBUG: _DEBUG,
            LogLevel.TRACE: _TRACE,
        }[level]
        if caller and level in _CALLER_TAGGED:
            prefix = f"{prefix[:-1]}:{caller}]"
        self._emit(level, prefix, style, message)

    def error(self, message: str) -> None:
        self.log(LogLevel.ERROR, message)

    def warn(self, message: str) -> None:
        self.log(LogLevel.WARN, message)

    def info(self, message: str) -> None:
        self.log(LogLevel.INFO, message)

    def success(self, message: str) -> None:
        self._emit(LogLevel.INFO, *_SUCCESS, message)

    def debug(self, message: str) -> None:
        self.log(LogLevel.DEBUG, message, caller=sys._getframe(1).f_code.co_name)

    def trace(self, message: str) -> None:
        self.log(LogLevel.TRACE, message, caller=sys._getframe(1).f_code.co_name)

    def section(self, title: str) -> None:
        self.info("")
        self.info(f"=== {title} ===")

    def subsection(self, title: str) -> None:
        self.info(f"--- {title} ---")

    def summary(self, message: str, style: str = "") -> None:
        """Emit regardless of level; a run's outcome is never silent."""
        line = Text(self._timestamp())
        line.append(message, style=style)
        self.console.print(line)

    # ------------------------------------------------------------------
    # Log files
    # ------------------------------------------------------------------

    def show_tail(self, log_file: Path | None, lines: int = 20) -> None:
        """Print the last ``lines`` lines of a tool log, indented.

        Only used at levels below TRACE; at TRACE the output was already
        streamed to the console.
        """
        if log_file is None or self.enabled(LogLevel.TRACE):
            return
        try:
            with open(log_file, "r", encoding="utf-8", errors="replace") as f:
                tail = deque(f, maxlen=lines)
        except OSError:
            return
        for raw in tail:
            self.err_console.print(Text(f"    {raw.rstrip()}", style="dim"))
