"""
Exception hierarchy for restic-orchestrator.

Only LogDirectoryMissingError, EngineNotFoundError and ConfigurationError
abort a run. Everything else is caught at the source / step level and folded
into the attempt's AggregateResult.
"""


class OrchestratorError(Exception):
    """Base class for all orchestrator errors"""


class ConfigurationError(OrchestratorError):
    """Invalid or unreadable configuration"""


class LogDirectoryMissingError(OrchestratorError):
    """The configured log directory does not exist"""

    def __init__(self, log_path):
        self.log_path = log_path
        super().__init__(f"Log directory does not exist: {log_path}")


class EngineNotFoundError(OrchestratorError):
    """The backup engine executable cannot be located"""

    def __init__(self, engine_path):
        self.engine_path = engine_path
        super().__init__(f"Backup engine executable not found: {engine_path}")


class EngineInvocationError(OrchestratorError):
    """The engine could not be started or exited non-zero"""

    def __init__(self, subcommand: str, returncode: int, detail: str = ""):
        self.subcommand = subcommand
        self.returncode = returncode
        message = f"Engine '{subcommand}' failed with exit code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MissingSourceError(OrchestratorError):
    """A backup source or one of its sub-paths could not be found"""


class MultiPartitionUnsupportedError(OrchestratorError):
    """A media identifier matched more than one mount point"""

    def __init__(self, identifier: str, mount_points):
        self.identifier = identifier
        self.mount_points = list(mount_points)
        joined = ", ".join(str(p) for p in self.mount_points)
        super().__init__(
            f"Source '{identifier}' matches {len(self.mount_points)} mount points ({joined}); "
            f"multi-partition media is not supported"
        )


class ConnectivityUnavailableError(OrchestratorError):
    """The repository stayed unreachable (or metered) after all attempts"""

    def __init__(self, repository: str, reason: str):
        self.repository = repository
        self.reason = reason
        super().__init__(f"Repository {repository} unavailable: {reason}")


class StateFileUnreadableError(OrchestratorError):
    """The state file exists but cannot be parsed"""
