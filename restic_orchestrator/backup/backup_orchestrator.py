#!/usr/bin/env python3
"""
Main backup orchestrator.
Drives one scheduled run: backup with retries, maintenance when due,
state persistence, reports, hooks and log retention.
"""

import logging
import socket
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from restic_orchestrator.backup.backup_runner import BackupRunner
from restic_orchestrator.backup.cleanup_manager import CleanupManager
from restic_orchestrator.config.loader import Settings
from restic_orchestrator.core.exceptions import (
    ConnectivityUnavailableError,
    LogDirectoryMissingError,
    OrchestratorError,
)
from restic_orchestrator.core.models import AggregateResult, Phase
from restic_orchestrator.core.retry import RetryOutcome, run_with_retry
from restic_orchestrator.core.run_log import RunAttempt, RunHistory, RunLogFactory
from restic_orchestrator.core.shell_executor import run_command
from restic_orchestrator.discovery.disk_scanner import DiskScanner, VolumeInspector
from restic_orchestrator.discovery.source_resolver import SourceResolver
from restic_orchestrator.engine.client import ResticEngine
from restic_orchestrator.maintenance.maintenance_runner import MaintenanceRunner
from restic_orchestrator.maintenance.policy import is_maintenance_due
from restic_orchestrator.network.connectivity import ConnectivityGate
from restic_orchestrator.network.probe import NetworkProbe, SystemNetworkProbe
from restic_orchestrator.notification.report_sender import (
    CompositeReportSender,
    ReportSender,
    Severity,
    should_send_report,
)
from restic_orchestrator.state.store import OrchestrationState, StateStore

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Outcome of both phases of one invocation"""
    backup: RetryOutcome
    maintenance: Optional[RetryOutcome] = None

    @property
    def success(self) -> bool:
        return self.backup.success and (self.maintenance is None or self.maintenance.success)

    @property
    def failed_attempts(self) -> int:
        failed = self.backup.failed_attempts
        if self.maintenance is not None:
            failed += self.maintenance.failed_attempts
        return failed


class BackupOrchestrator:
    """
    Top-level driver for one scheduled invocation.

    The exit status of a run is the number of failed attempts across both
    phases; zero means everything succeeded.
    """

    def __init__(
        self,
        settings: Settings,
        engine: ResticEngine,
        state_store: StateStore,
        gate: ConnectivityGate,
        backup_runner: BackupRunner,
        maintenance_runner: MaintenanceRunner,
        reporter: ReportSender,
        run_logs: RunLogFactory,
        history: RunHistory,
        cleanup: CleanupManager,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
        hostname: Optional[str] = None
    ):
        self.settings = settings
        self.engine = engine
        self.state_store = state_store
        self.gate = gate
        self.backup_runner = backup_runner
        self.maintenance_runner = maintenance_runner
        self.reporter = reporter
        self.run_logs = run_logs
        self.history = history
        self.cleanup = cleanup
        self.clock = clock
        self.sleep = sleep
        self.hostname = hostname or socket.gethostname()
        self.state = OrchestrationState()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        probe: Optional[NetworkProbe] = None,
        inspector: Optional[VolumeInspector] = None,
        reporter: Optional[ReportSender] = None,
        engine: Optional[ResticEngine] = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep
    ) -> "BackupOrchestrator":
        """Wire the default collaborators; any of them can be replaced"""
        engine = engine or ResticEngine(
            settings.engine_path, settings.repository, settings.environment, sleep=sleep
        )
        state_store = StateStore(settings.state_file)

        return cls(
            settings=settings,
            engine=engine,
            state_store=state_store,
            gate=ConnectivityGate(
                probe or SystemNetworkProbe(),
                delay_seconds=settings.internet_test_delay_seconds,
                avoid_metered=settings.avoid_metered_networks,
                sleep=sleep,
            ),
            backup_runner=BackupRunner(settings, engine, SourceResolver(inspector or DiskScanner())),
            maintenance_runner=MaintenanceRunner(
                settings, engine, clock=clock, checkpoint=state_store.save
            ),
            reporter=reporter or CompositeReportSender.from_settings(settings),
            run_logs=RunLogFactory(settings.log_path, clock=clock),
            history=RunHistory(settings.history_file, settings.history_limit),
            cleanup=CleanupManager(settings.log_path, settings.log_retention_days, clock=clock),
            clock=clock,
            sleep=sleep,
        )

    def preflight(self) -> None:
        """
        Checks that abort the run before any phase starts.

        Raises:
            LogDirectoryMissingError: The log directory does not exist
            EngineNotFoundError: The engine executable cannot be located
        """
        if not self.settings.log_path.is_dir():
            raise LogDirectoryMissingError(self.settings.log_path)

        self.engine.ensure_available()
        version = self.engine.version()
        if version:
            logger.info(f"Backup engine: {version}")

    def run(self) -> int:
        """
        Execute one full orchestration run.

        Returns:
            Total number of failed attempts (0 on full success)
        """
        self.preflight()
        self.state = self.state_store.load()

        logger.info("=" * 60)
        logger.info(f"Starting backup run on {self.hostname} for {self.settings.repository}")
        logger.info("=" * 60)

        backup = run_with_retry(
            lambda n: self._attempt(Phase.BACKUP, n, self.backup_runner.run),
            self.settings.global_retry_attempts,
            self.settings.retry_cooldown_seconds,
            sleep=self.sleep,
            label=Phase.BACKUP.value,
        )
        summary = RunSummary(backup=backup)

        if backup.success:
            due = is_maintenance_due(self.state, self.settings, self.clock())
            self._save_state()

            if due:
                summary.maintenance = run_with_retry(
                    lambda n: self._attempt(Phase.MAINTENANCE, n, self._maintenance),
                    self.settings.global_retry_attempts,
                    self.settings.retry_cooldown_seconds,
                    sleep=self.sleep,
                    label=Phase.MAINTENANCE.value,
                )
            else:
                logger.info(
                    f"Maintenance not due ({self.state.maintenance_counter}/"
                    f"{self.settings.maintenance_interval} backups since last maintenance)"
                )

        self._run_hook(summary.success)
        self._save_state()
        self.cleanup.cleanup_old_logs()

        logger.info(
            f"Run finished: {'success' if summary.success else 'failure'} "
            f"({summary.failed_attempts} failed attempt(s))"
        )
        return summary.failed_attempts

    def _maintenance(self, attempt: RunAttempt) -> AggregateResult:
        return self.maintenance_runner.run(self.state, attempt)

    def _attempt(
        self,
        phase: Phase,
        attempt_number: int,
        work: Callable[[RunAttempt], AggregateResult]
    ) -> AggregateResult:
        """Run one attempt of a phase and persist / report its outcome"""
        attempt = self.run_logs.open_attempt(phase, attempt_number)
        attempt.log(f"{phase.title} attempt {attempt_number} started on {self.hostname}")

        try:
            self.gate.ensure_available(
                self.settings.repository, self.settings.internet_test_attempts, attempt
            )
            self.engine.clear_stale_locks(attempt, self.settings.lock_release_grace_seconds)
            result = work(attempt)
        except ConnectivityUnavailableError as e:
            result = AggregateResult()
            result.abort(str(e))
        except (OrchestratorError, OSError) as e:
            attempt.error(f"{phase.title} attempt {attempt_number} failed: {e}")
            result = AggregateResult()
            result.record_error(str(e))

        self._finish_attempt(attempt, result)
        return result

    def _finish_attempt(self, attempt: RunAttempt, result: AggregateResult) -> None:
        previous_failed = not self._last_success(attempt.phase)
        self._set_last_success(attempt.phase, result.success)

        self._save_state()
        self.history.append(attempt, result, self.clock())
        self._report(attempt, result, previous_failed)

    def _report(self, attempt: RunAttempt, result: AggregateResult, previous_failed: bool) -> None:
        has_errors = result.has_errors or attempt.has_errors()

        if not should_send_report(has_errors, self.settings.send_on_success, previous_failed):
            logger.debug(f"Success report for {attempt.phase.value} suppressed")
            return

        if not result.success:
            status = "failed"
        elif has_errors:
            status = "completed with errors"
        else:
            status = "succeeded"

        if has_errors:
            severity = Severity.ERROR
        elif result.warnings:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        subject = (
            f"{attempt.phase.title} {status} on {self.hostname} "
            f"(attempt {attempt.attempt_number}/{max(1, self.settings.global_retry_attempts)})"
        )
        body = "\n".join([
            self._summary(attempt, result),
            "",
            attempt.read_success_log(),
        ])
        attachment = attempt.error_log if attempt.has_errors() else None

        self.reporter.send_report(subject, body, attachment, severity)

    def _summary(self, attempt: RunAttempt, result: AggregateResult) -> str:
        lines = [
            f"Repository: {self.settings.repository}",
            f"Result: {'success' if result.success else 'failure'}",
            f"Errors: {result.error_count}",
            f"Warnings: {len(result.warnings)}",
        ]
        rate = self.history.success_rate(attempt.phase)
        if rate is not None:
            lines.append(f"{attempt.phase.title} success rate: {rate:.1f}%")
        return "\n".join(lines)

    def _last_success(self, phase: Phase) -> bool:
        if phase == Phase.BACKUP:
            return self.state.last_backup_successful
        return self.state.last_maintenance_successful

    def _set_last_success(self, phase: Phase, success: bool) -> None:
        if phase == Phase.BACKUP:
            self.state.last_backup_successful = success
        else:
            self.state.last_maintenance_successful = success

    def _save_state(self) -> None:
        try:
            self.state_store.save(self.state)
        except OSError as e:
            logger.error(f"Could not save state to {self.state_store.path}: {e}")

    def _run_hook(self, success: bool) -> None:
        hook = self.settings.success_hook if success else self.settings.failure_hook
        if not hook:
            return

        name = "success" if success else "failure"
        logger.info(f"Running {name} hook: {' '.join(hook)}")
        ok, _, stderr = run_command(
            list(hook),
            check=False,
            timeout=self.settings.hook_timeout or None,
            env={"RESTIC_ORCHESTRATOR_RESULT": name},
        )
        if not ok:
            logger.error(f"The {name} hook failed: {stderr}")
