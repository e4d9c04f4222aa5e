"""Environment diagnostics for ``sqlpack doctor``.

Checks that the SQL Server command line tools are on PATH and that an
ODBC driver for SQL Server is installed (needed for schema scripting).
"""

import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rich.table import Table

from sqlpack.supervisor import Supervisor

REQUIRED_TOOLS = ("sqlcmd", "bcp")


@dataclass
class DoctorCheck:
    name: str
    ok: bool
    detail: str


def installed_odbc_drivers() -> list[str]:
    """Return ODBC driver names reported by pyodbc.

    Raises:
        ImportError: If pyodbc (or the unixODBC library it links) is missing.
    """
    import pyodbc

    return list(pyodbc.drivers())


def check_tools(which: Callable[[str], str | None] = shutil.which) -> list[DoctorCheck]:
    checks = []
    for tool in REQUIRED_TOOLS:
        path = which(tool)
        checks.append(DoctorCheck(tool, path is not None, path or "not found on PATH"))
    return checks


def check_odbc_driver(drivers: Iterable[str]) -> DoctorCheck:
    sql_server = [d for d in drivers if "SQL Server" in d]
    if sql_server:
        return DoctorCheck("ODBC driver", True, ", ".join(sql_server))
    return DoctorCheck("ODBC driver", False, "no SQL Server ODBC driver installed")


def run_doctor(
    supervisor: Supervisor,
    which: Callable[[str], str | None] = shutil.which,
    odbc_drivers: list[str] | None = None,
) -> int:
    """Run all checks and print a status table.

    Args:
        supervisor: Logger whose console receives the table.
        which: PATH lookup (injectable for tests).
        odbc_drivers: Installed driver names; queried from pyodbc when None.

    Returns:
        0 if every check passed, 1 otherwise.
    """
    log = supervisor
    log.info("Checking required tools...")

    checks = check_tools(which)
    if odbc_drivers is None:
        try:
            odbc_drivers = installed_odbc_drivers()
        except ImportError as e:
            checks.append(DoctorCheck("ODBC driver", False, f"pyodbc unavailable: {e}"))
    if odbc_drivers is not None:
        checks.append(check_odbc_driver(odbc_drivers))

    table = Table(title="sqlpack doctor", show_header=True, header_style="bold")
    table.add_column("Check")
    table.add_column("Status", width=6)
    table.add_column("Detail")
    for check in checks:
        status = "[green]OK[/green]" if check.ok else "[red]FAIL[/red]"
        table.add_row(check.name, status, check.detail)
    log.console.print(table)

    failed = [c for c in checks if not c.ok]
    for check in failed:
        if check.name in REQUIRED_TOOLS:
            log.error(f"{check.name} not found. Please install SQL Server command line tools.")
        else:
            log.error(f"{check.name}: {check.detail}")

    if failed:
        log.summary(f"✗ {len(failed)} check(s) failed", style="red")
        return 1
    log.summary("✓ All checks passed", style="green")
    return 0
