"""
Shared fakes and fixtures.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from restic_orchestrator.config.loader import BackupSource, Settings
from restic_orchestrator.core.logger import LOGGER_NAME
from restic_orchestrator.core.models import Phase
from restic_orchestrator.core.run_log import RunLogFactory

NOW = datetime(2026, 3, 14, 2, 30, 0)


class FakeEngine:
    """Records engine calls; return codes are configured per subcommand"""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None):
        self.returncodes = dict(returncodes or {})
        self.calls: List[tuple] = []

    def _result(self, name: str, attempt, *details) -> int:
        self.calls.append((name, *details))
        code = self.returncodes.get(name, 0)
        if code != 0:
            attempt.error(f"engine {name} exited with {code}")
        return code

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def ensure_available(self) -> None:
        pass

    def version(self) -> Optional[str]:
        return "restic 0.17.0"

    def clear_stale_locks(self, attempt, grace_seconds) -> bool:
        self.calls.append(("unlock-check",))
        return False

    def backup(self, attempt, paths, tag, exclude_files=(), use_snapshot=False, extra_args=()) -> int:
        return self._result("backup", attempt, list(paths), tag, list(exclude_files), use_snapshot)

    def forget(self, attempt, retention_policy, extra_args=()) -> int:
        return self._result("forget", attempt, tuple(retention_policy))

    def prune(self, attempt, prune_policy, extra_args=()) -> int:
        return self._result("prune", attempt, tuple(prune_policy))

    def check(self, attempt, read_data=False, extra_args=()) -> int:
        return self._result("check", attempt, read_data)

    def self_update(self, attempt) -> int:
        return self._result("self-update", attempt)

    def init(self, attempt) -> int:
        return self._result("init", attempt)


class FakeProbe:
    def __init__(self, route: bool = True, reachable: bool = True, metered: bool = False):
        self.route = route
        self.reachable = reachable
        self.metered = metered
        self.calls = 0
        self.hosts: List[str] = []

    def has_default_route(self) -> bool:
        self.calls += 1
        return self.route

    def is_reachable(self, host: str) -> bool:
        self.hosts.append(host)
        return self.reachable

    def is_metered(self) -> bool:
        return self.metered


class FakeInspector:
    def __init__(self, mounts: Optional[Dict[str, List[Path]]] = None, snapshots: bool = False):
        self.mounts = dict(mounts or {})
        self.snapshots = snapshots

    def find_mount_points(self, identifier: str) -> List[Path]:
        return list(self.mounts.get(identifier, []))

    def supports_snapshots(self, path: Path) -> bool:
        return self.snapshots


class RecordingReporter:
    def __init__(self):
        self.reports: List[tuple] = []

    def send_report(self, subject, body, attachment, severity) -> bool:
        self.reports.append((subject, body, attachment, severity))
        return True


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    """Settings with a local repository, an existing log directory and no waiting"""
    log_path = tmp_path / "logs"
    log_path.mkdir(exist_ok=True)
    repository = tmp_path / "repo"
    repository.mkdir(exist_ok=True)
    data = tmp_path / "data"
    data.mkdir(exist_ok=True)

    values = dict(
        repository=str(repository),
        log_path=log_path,
        state_file=log_path / "state.json",
        sources=(BackupSource(str(data)),),
        retry_cooldown_seconds=0,
        internet_test_delay_seconds=0,
        lock_release_grace_seconds=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def attempt(tmp_path):
    log_dir = tmp_path / "attempt-logs"
    log_dir.mkdir()
    return RunLogFactory(log_dir, clock=lambda: NOW).open_attempt(Phase.BACKUP, 1)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging so streams do not leak between tests"""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
