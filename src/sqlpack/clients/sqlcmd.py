"""``SqlClient`` implementation backed by the sqlcmd command-line tool."""

from dataclasses import replace
from pathlib import Path

from sqlpack.config.models import ConnectionSettings
from sqlpack.supervisor import ExecutionResult, Supervisor

SQLCMD = "sqlcmd"


class SqlCmdClient:
    """Run T-SQL through sqlcmd.

    Args:
        connection: Server and credentials.
        supervisor: Executes the tool and owns output handling.
        executable: sqlcmd binary name or path.

    Example:
        client = SqlCmdClient(connection, supervisor)
        if not client.probe().ok:
            ...
        exists = client.query_scalar(
            "SELECT COUNT(*) FROM sys.databases WHERE name = N'Shop'"
        )
    """

    def __init__(
        self,
        connection: ConnectionSettings,
        supervisor: Supervisor,
        executable: str = SQLCMD,
    ):
        self.connection = connection
        self.supervisor = supervisor
        self.executable = executable

    def connection_args(self) -> list[str]:
        """``-S`` plus SQL auth (``-U/-P``) or trusted auth (``-E``)."""
        conn = self.connection
        args = ["-S", conn.server]
        if conn.uses_trusted_connection:
            args.append("-E")
        else:
            args += ["-U", conn.username, "-P", conn.password.get_secret_value()]
        if conn.trust_server_certificate:
            args.append("-C")
        return args

    def _run(
        self,
        description: str,
        args: list[str],
        database: str | None = None,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        argv = self.connection_args()
        if database:
            argv += ["-d", database]
        return self.supervisor.execute(description, log_file, self.executable, *argv, *args)

    def probe(self) -> ExecutionResult:
        return self._run("Test connection", ["-Q", "SELECT @@VERSION", "-h", "-1"])

    def query_scalar(self, sql: str, database: str | None = None) -> str | None:
        result = self._run(
            "Query",
            ["-Q", f"SET NOCOUNT ON; {sql}", "-h", "-1", "-W"],
            database=database,
        )
        if not result.ok:
            return None
        for line in result.output_text.splitlines():
            if line.strip():
                return line.strip()
        return None

    def execute_sql(
        self,
        description: str,
        sql: str,
        database: str | None = None,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        return self._run(description, ["-b", "-Q", sql], database=database, log_file=log_file)

    def run_script(
        self,
        description: str,
        script: Path,
        database: str,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Apply ``script`` and normalize the exit code.

        sqlcmd exits 0 even when it prints informational messages, so the
        result is reclassified: failure -> 1, success with output -> 2,
        success without output -> 0.
        """
        result = self._run(
            description,
            ["-b", "-i", str(script)],
            database=database,
            log_file=log_file,
        )
        return replace(result, exit_code=classify_script_exit(result))


def classify_script_exit(result: ExecutionResult) -> int:
    """Map a raw sqlcmd result onto the 0 / 1 / 2 wrapper convention."""
    if result.exit_code != 0:
        return 1
    if result.captured_output.strip():
        return 2
    return 0
