#!/usr/bin/env python3
"""
Backup engine client.
Runs engine subcommands as child processes, streaming their output into
the current attempt's log files.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from restic_orchestrator.core.exceptions import EngineInvocationError, EngineNotFoundError
from restic_orchestrator.core.run_log import RunAttempt
from restic_orchestrator.core.shell_executor import run_command, run_to_files, check_command_available
from restic_orchestrator.engine.command import CommandBuilder, EngineCommand, redact

logger = logging.getLogger(__name__)


class ResticEngine:
    """
    Client for a restic-compatible engine binary.

    Secrets (repository password, cloud credentials) are only passed through
    the child process environment.
    """

    def __init__(
        self,
        executable: str,
        repository: str,
        environment: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.executable = executable
        self.repository = repository
        self.environment = dict(environment or {})
        self.sleep = sleep

    def ensure_available(self) -> None:
        """
        Raises:
            EngineNotFoundError: If the executable cannot be located
        """
        if not check_command_available(self.executable):
            raise EngineNotFoundError(self.executable)

    def version(self) -> Optional[str]:
        """Return the engine's version line, or None if it cannot be queried"""
        argv = CommandBuilder.version().argv(self.executable, self.repository)
        success, stdout, _ = run_command(argv, check=False, env=self.environment)
        return stdout.splitlines()[0] if success and stdout else None

    def run(self, command: EngineCommand, attempt: RunAttempt) -> int:
        """
        Run one engine command for an attempt.

        Returns:
            Exit code (0 on success, -1 if the process could not be started)
        """
        argv = command.argv(self.executable, self.repository)
        attempt.log(f"Running: {redact(argv)}")

        returncode = run_to_files(argv, attempt.success_log, attempt.error_log, env=self.environment)

        if returncode != 0:
            logger.debug(f"Engine '{command.name}' exited with {returncode}")
        return returncode

    def list_locks(self) -> List[str]:
        """Return the ids of the locks currently held on the repository"""
        argv = CommandBuilder.list_locks().argv(self.executable, self.repository)
        success, stdout, stderr = run_command(argv, check=False, timeout=120, env=self.environment)
        if not success:
            logger.warning(f"Could not list repository locks: {stderr}")
            return []
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    def clear_stale_locks(self, attempt: RunAttempt, grace_seconds: float) -> bool:
        """
        Remove a stale lock left by an interrupted run of this orchestrator.

        Returns:
            True if a lock was found and removed

        Raises:
            EngineInvocationError: If the unlock command fails
        """
        locks = self.list_locks()
        if not locks:
            return False

        attempt.log(f"Found {len(locks)} stale repository lock(s), unlocking")
        returncode = self.run(CommandBuilder.unlock(), attempt)
        if returncode != 0:
            raise EngineInvocationError("unlock", returncode, "repository stays locked")

        if grace_seconds > 0:
            attempt.log(f"Waiting {grace_seconds:.0f}s for the repository backend to settle")
            self.sleep(grace_seconds)
        return True

    def backup(
        self,
        attempt: RunAttempt,
        paths: Iterable[Path],
        tag: str,
        exclude_files: Iterable[Path] = (),
        use_snapshot: bool = False,
        extra_args: Sequence[str] = ()
    ) -> int:
        command = CommandBuilder.backup(paths, tag, exclude_files, use_snapshot, extra_args)
        return self.run(command, attempt)

    def forget(self, attempt: RunAttempt, retention_policy: Sequence[str], extra_args: Sequence[str] = ()) -> int:
        return self.run(CommandBuilder.forget(retention_policy, extra_args), attempt)

    def prune(self, attempt: RunAttempt, prune_policy: Sequence[str], extra_args: Sequence[str] = ()) -> int:
        return self.run(CommandBuilder.prune(prune_policy, extra_args), attempt)

    def check(self, attempt: RunAttempt, read_data: bool = False, extra_args: Sequence[str] = ()) -> int:
        return self.run(CommandBuilder.check(read_data, extra_args), attempt)

    def self_update(self, attempt: RunAttempt) -> int:
        return self.run(CommandBuilder.self_update(), attempt)

    def init(self, attempt: RunAttempt) -> int:
        return self.run(CommandBuilder.init(), attempt)
