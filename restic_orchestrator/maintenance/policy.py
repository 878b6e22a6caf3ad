"""
Maintenance scheduling decisions.

Both functions take the state explicitly and mutate only the fields named
in their docstrings.
"""

from datetime import datetime

from restic_orchestrator.config.loader import Settings
from restic_orchestrator.state.store import OrchestrationState

SECONDS_PER_DAY = 86400


def days_since(moment: datetime, now: datetime) -> float:
    return (now - moment).total_seconds() / SECONDS_PER_DAY


def is_maintenance_due(state: OrchestrationState, settings: Settings, now: datetime) -> bool:
    """
    Decide whether maintenance should run after a successful backup.

    Every evaluation increments ``state.maintenance_counter``. Maintenance is
    due when it never ran, when ``maintenance_days`` have passed since it last
    succeeded, or when the counter reaches ``maintenance_interval``.
    Returns False without touching the state when maintenance is disabled.
    """
    if not settings.maintenance_enabled:
        return False

    state.maintenance_counter += 1

    if state.last_maintenance_at is None:
        return True

    time_due = days_since(state.last_maintenance_at, now) >= settings.maintenance_days
    count_due = state.maintenance_counter >= settings.maintenance_interval
    return time_due or count_due


def select_deep_check(state: OrchestrationState, settings: Settings, now: datetime) -> bool:
    """
    Decide whether the integrity check reads all data.

    When deep mode is chosen ``state.last_deep_maintenance_at`` is set to
    ``now`` immediately, whatever the outcome of the check.
    ``deep_maintenance_days <= 0`` disables deep checks.
    """
    if settings.deep_maintenance_days <= 0:
        return False

    last = state.last_deep_maintenance_at
    if last is None or days_since(last, now) >= settings.deep_maintenance_days:
        state.last_deep_maintenance_at = now
        return True
    return False
