"""The execution supervisor: a RunLogger that can also run tools.

Every external command sqlpack runs goes through ``Supervisor.execute``.
The configured level alone decides capture vs. streaming, so call sites
never branch on verbosity.
"""

import shlex
from pathlib import Path

from sqlpack.supervisor.log import RunLogger
from sqlpack.supervisor.process import CaptureMode, ExecutionResult, run_command

# Flags whose following argument is a secret
_SECRET_FLAGS = {"-P"}


def format_command(argv: list[str]) -> str:
    """Render a command line for display with passwords masked."""
    shown: list[str] = []
    mask_next = False
    for arg in argv:
        if mask_next:
            shown.append("****")
            mask_next = False
            continue
        shown.append(shlex.quote(arg))
        mask_next = arg in _SECRET_FLAGS
    return " ".join(shown)


class Supervisor(RunLogger):
    """Leveled logger plus the single command-execution primitive."""

    @property
    def capture_mode(self) -> CaptureMode:
        return CaptureMode.for_level(self.level)

    def execute(
        self,
        description: str,
        log_file: Path | None,
        command: str,
        *args: str,
    ) -> ExecutionResult:
        """Run ``command args...`` with level-dependent output handling.

        Args:
            description: Human-readable label for debug output.
            log_file: File receiving the tool's output, or ``None``.
            command: Executable name.
            *args: Arguments.

        Returns:
            ExecutionResult; a non-zero exit is reported there, not raised.

        Raises:
            ToolNotFoundError: If ``command`` is not installed.
        """
        argv = [command, *args]
        self.trace(f"Executing: {format_command(argv)}")
        mode = self.capture_mode
        if mode is CaptureMode.STREAM:
            self.debug(f"Running: {description}")

        result = run_command(argv, mode, log_file=log_file, echo=self._echo)
        self.trace(f"Exit code {result.exit_code}: {description}")
        return result

    def _echo(self, line: bytes) -> None:
        self.console.out(line.decode("utf-8", errors="replace").rstrip("\r\n"), highlight=False)
