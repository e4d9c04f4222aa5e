"""Subprocess execution primitive.

``run_command`` is the single place where sqlpack starts external tools.
The caller chooses a ``CaptureMode``; the primitive never decides based on
verbosity itself.

- ``STREAM``: tool output is echoed live and also written to the log file.
- ``CAPTURE``: tool output stays off the console and only lands in the
  log file (and in ``ExecutionResult.captured_output``).

A non-zero exit code is data, not an exception.  Only a missing
executable raises (``ToolNotFoundError``).
"""

import subprocess
from collections.abc import Callable, Sequence
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sqlpack.config.models import LogLevel
from sqlpack.errors import ToolNotFoundError


class CaptureMode(Enum):
    """How a command's output is handled."""

    STREAM = "stream"
    CAPTURE = "capture"

    @classmethod
    def for_level(cls, level: LogLevel) -> "CaptureMode":
        """TRACE streams, every quieter level captures."""
        return cls.STREAM if level >= LogLevel.TRACE else cls.CAPTURE


@dataclass
class ExecutionResult:
    """Outcome of running one external command."""

    exit_code: int
    captured_output: bytes = b""
    timed_out: bool = False  # reserved; commands run without a timeout
    log_file: Path | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output_text(self) -> str:
        return self.captured_output.decode("utf-8", errors="replace")


def run_command(
    argv: Sequence[str],
    capture_mode: CaptureMode,
    log_file: Path | None = None,
    echo: Callable[[bytes], None] | None = None,
) -> ExecutionResult:
    """Run ``argv`` synchronously, merging stderr into stdout.

    Args:
        argv: Command and arguments.
        capture_mode: ``STREAM`` echoes each output line through ``echo``;
            ``CAPTURE`` keeps output off the console.
        log_file: Optional file the output is appended to (parent
            directories are created).
        echo: Line sink used in ``STREAM`` mode.

    Returns:
        ExecutionResult with the exit code and the full output.

    Raises:
        ToolNotFoundError: If the executable does not exist.

    Example:
        result = run_command(["sqlcmd", "-?"], CaptureMode.CAPTURE)
        if not result.ok:
            ...
    """
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    log_handle = open(log_file, "ab") if log_file is not None else nullcontext()

    try:
        with log_handle as fh:
            if capture_mode is CaptureMode.STREAM:
                return _run_streaming(argv, fh, echo, log_file)

            completed = subprocess.run(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
            if fh is not None:
                fh.write(completed.stdout)
            return ExecutionResult(
                exit_code=completed.returncode,
                captured_output=completed.stdout,
                log_file=log_file,
            )
    except FileNotFoundError as e:
        raise ToolNotFoundError(argv[0]) from e


def _run_streaming(
    argv: Sequence[str],
    fh,
    echo: Callable[[bytes], None] | None,
    log_file: Path | None,
) -> ExecutionResult:
    chunks: list[bytes] = []
    with subprocess.Popen(
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    ) as proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            chunks.append(line)
            if echo is not None:
                echo(line)
            if fh is not None:
                fh.write(line)
        exit_code = proc.wait()

    return ExecutionResult(
        exit_code=exit_code,
        captured_output=b"".join(chunks),
        log_file=log_file,
    )
