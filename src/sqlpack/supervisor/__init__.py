"""Execution supervisor: leveled logging and external command execution.

Usage:
    from sqlpack.supervisor import Supervisor

    sup = Supervisor(settings)
    result = sup.execute("Generate format file", log_path, "bcp", ...)
    if not result.ok:
        sup.warn("bcp failed")
        sup.show_tail(log_path)
"""

from sqlpack.supervisor.log import RunLogger
from sqlpack.supervisor.process import CaptureMode, ExecutionResult, run_command
from sqlpack.supervisor.supervisor import Supervisor, format_command

__all__ = [
    "RunLogger",
    "Supervisor",
    "CaptureMode",
    "ExecutionResult",
    "run_command",
    "format_command",
]
