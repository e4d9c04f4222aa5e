"""``BulkCopyClient`` implementation backed by the bcp utility.

Data is moved in native format (``-n``) with a format file per table, so
the payload can only be loaded with its exact descriptor.
"""

from pathlib import Path

from sqlpack.config.models import ConnectionSettings
from sqlpack.manifest.models import TableIdentifier
from sqlpack.supervisor import ExecutionResult, Supervisor

BCP = "bcp"


class BcpClient:
    """Run bcp format/out/in operations.

    Args:
        connection: Server and credentials.
        supervisor: Executes the tool and owns output handling.
        executable: bcp binary name or path.
        keep_identity: Pass ``-E`` on import so identity values survive.
    """

    def __init__(
        self,
        connection: ConnectionSettings,
        supervisor: Supervisor,
        executable: str = BCP,
        keep_identity: bool = True,
    ):
        self.connection = connection
        self.supervisor = supervisor
        self.executable = executable
        self.keep_identity = keep_identity

    def connection_args(self) -> list[str]:
        """``-S`` plus SQL auth (``-U/-P``) or trusted auth (``-T``)."""
        conn = self.connection
        args = ["-S", conn.server]
        if conn.uses_trusted_connection:
            args.append("-T")
        else:
            args += ["-U", conn.username, "-P", conn.password.get_secret_value()]
        if conn.trust_server_certificate:
            args.append("-u")
        return args

    def generate_format(
        self,
        table: TableIdentifier,
        database: str,
        format_file: Path,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        return self.supervisor.execute(
            f"Generate format file for {table.qualified}",
            log_file,
            self.executable,
            table.in_database(database),
            "format",
            "nul",
            "-n",
            "-f",
            str(format_file),
            *self.connection_args(),
        )

    def export_data(
        self,
        table: TableIdentifier,
        database: str,
        data_file: Path,
        format_file: Path,
        log_file: Path | None = None,
        row_limit: int = 0,
    ) -> ExecutionResult:
        args = [
            table.in_database(database),
            "out",
            str(data_file),
            "-f",
            str(format_file),
            *self.connection_args(),
        ]
        if row_limit > 0:
            args += ["-L", str(row_limit)]
        return self.supervisor.execute(
            f"Export data for {table.qualified}", log_file, self.executable, *args
        )

    def import_data(
        self,
        table: TableIdentifier,
        database: str,
        data_file: Path,
        format_file: Path,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        args = [
            table.bracketed(database),
            "in",
            str(data_file),
            "-f",
            str(format_file),
            *self.connection_args(),
        ]
        if self.keep_identity:
            args.append("-E")
        return self.supervisor.execute(
            f"Import data for {table.qualified}", log_file, self.executable, *args
        )
