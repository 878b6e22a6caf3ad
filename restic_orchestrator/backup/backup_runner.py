#!/usr/bin/env python3
"""
Backup runner.
Executes one backup attempt across all configured sources.
"""

import logging
from pathlib import Path
from typing import List

from restic_orchestrator.config.loader import Settings
from restic_orchestrator.core.models import AggregateResult
from restic_orchestrator.core.run_log import RunAttempt
from restic_orchestrator.discovery.source_resolver import ResolutionStatus, SourceResolver
from restic_orchestrator.engine.client import ResticEngine

logger = logging.getLogger(__name__)


class BackupRunner:
    """
    Runs the engine once per source, in configured order.
    One failing source never stops the remaining ones.
    """

    def __init__(
        self,
        settings: Settings,
        engine: ResticEngine,
        resolver: SourceResolver
    ):
        self.settings = settings
        self.engine = engine
        self.resolver = resolver

    def run(self, attempt: RunAttempt) -> AggregateResult:
        """
        Back up every configured source.

        Args:
            attempt: Log sinks of the current attempt

        Returns:
            AggregateResult, successful only if no source had a genuine failure
        """
        result = AggregateResult()
        exclude_files = self._exclude_files(attempt, result)

        for source in self.settings.sources:
            resolution = self.resolver.resolve(source)

            if resolution.status == ResolutionStatus.FATAL:
                self._fail(attempt, result, f"Skipping source '{source.identifier}': {resolution.reason}")
                continue

            if resolution.status == ResolutionStatus.MISSING:
                self._missing(attempt, result, f"Missing source '{source.identifier}': {resolution.reason}")
                continue

            for sub_path in resolution.missing_paths:
                self._missing(
                    attempt, result,
                    f"Missing path '{sub_path}' in source '{source.identifier}'"
                )

            root = resolution.root
            use_snapshot = self.settings.use_snapshots and root.snapshot_capable

            attempt.log(
                f"Backing up '{source.identifier}' from {root.root_path}"
                f"{' using a filesystem snapshot' if use_snapshot else ''}"
            )
            returncode = self.engine.backup(
                attempt,
                paths=root.include_paths,
                tag=source.identifier,
                exclude_files=exclude_files,
                use_snapshot=use_snapshot,
                extra_args=self.settings.additional_backup_args,
            )

            if returncode == 0:
                attempt.log(f"Backup of '{source.identifier}' completed")
            else:
                self._fail(
                    attempt, result,
                    f"Backup of '{source.identifier}' failed with exit code {returncode}"
                )

        if result.success:
            attempt.log(f"Backup attempt {attempt.attempt_number} completed successfully")
        return result

    def _exclude_files(self, attempt: RunAttempt, result: AggregateResult) -> List[Path]:
        """Global and local exclude files that exist on disk"""
        files = []
        for path in (self.settings.global_exclude_file, self.settings.local_exclude_file):
            if path is None:
                continue
            if path.exists():
                files.append(path)
            else:
                message = f"Exclude file {path} does not exist, ignoring it"
                attempt.warning(message)
                result.record_warning(message)
        return files

    def _missing(self, attempt: RunAttempt, result: AggregateResult, message: str) -> None:
        """Apply the missing-source policy"""
        if self.settings.ignore_missing_sources:
            attempt.warning(message)
            result.record_warning(message)
        else:
            self._fail(attempt, result, message)

    @staticmethod
    def _fail(attempt: RunAttempt, result: AggregateResult, message: str) -> None:
        attempt.error(message)
        result.record_error(message)
