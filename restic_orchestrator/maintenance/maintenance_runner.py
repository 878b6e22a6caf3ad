#!/usr/bin/env python3
"""
Maintenance runner.
Forget, prune, check and self-update, each step independently fallible.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from restic_orchestrator.config.loader import Settings
from restic_orchestrator.core.models import AggregateResult
from restic_orchestrator.core.run_log import RunAttempt
from restic_orchestrator.engine.client import ResticEngine
from restic_orchestrator.maintenance.policy import select_deep_check
from restic_orchestrator.state.store import OrchestrationState

logger = logging.getLogger(__name__)


class MaintenanceRunner:
    """
    Runs repository maintenance steps.

    All steps run even if an earlier one failed, so each attempt does as
    much useful work as possible.
    """

    def __init__(
        self,
        settings: Settings,
        engine: ResticEngine,
        clock: Callable[[], datetime] = datetime.now,
        checkpoint: Optional[Callable[[OrchestrationState], None]] = None
    ):
        """
        Args:
            settings: Orchestrator settings
            engine: Engine client
            clock: Source of the current time
            checkpoint: Called with the state whenever it must hit disk mid-attempt
        """
        self.settings = settings
        self.engine = engine
        self.clock = clock
        self.checkpoint = checkpoint

    def run(self, state: OrchestrationState, attempt: RunAttempt) -> AggregateResult:
        """
        Run one maintenance attempt, updating ``state`` in place.

        When forget, prune and check all succeed ``last_maintenance_at`` is set
        and the counter reset, even if the self-update then fails the attempt.
        Otherwise both are left alone so the next run retries promptly.
        """
        result = AggregateResult()
        extra = self.settings.additional_maintenance_args

        # 1. Forget
        attempt.log("Applying snapshot retention policy")
        self._step(attempt, result, "forget",
                   self.engine.forget(attempt, self.settings.retention_policy, extra))

        # 2. Prune
        attempt.log("Pruning unreferenced data")
        self._step(attempt, result, "prune",
                   self.engine.prune(attempt, self.settings.prune_policy, extra))

        # 3. Check
        deep = select_deep_check(state, self.settings, self.clock())
        if deep:
            attempt.log("Checking repository integrity (deep check, reading all data)")
            if self.checkpoint is not None:
                self.checkpoint(state)
        else:
            attempt.log("Checking repository integrity")
        self._step(attempt, result, "check", self.engine.check(attempt, read_data=deep))

        repository_maintained = result.success

        # 4. Self-update, fails the attempt but not the repository bookkeeping
        if self.settings.self_update_enabled:
            attempt.log("Updating the backup engine")
            self._step(attempt, result, "self-update", self.engine.self_update(attempt))

        if repository_maintained:
            state.last_maintenance_at = self.clock()
            state.maintenance_counter = 0

        if result.success:
            attempt.log(f"Maintenance attempt {attempt.attempt_number} completed successfully")

        return result

    @staticmethod
    def _step(attempt: RunAttempt, result: AggregateResult, name: str, returncode: int) -> None:
        if returncode == 0:
            attempt.log(f"Maintenance step '{name}' completed")
            return
        message = f"Maintenance step '{name}' failed with exit code {returncode}"
        attempt.error(message)
        result.record_error(message)
