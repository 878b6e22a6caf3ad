import os
from datetime import timedelta

from conftest import NOW
from restic_orchestrator.backup.cleanup_manager import CleanupManager


def _age(path, days):
    moment = (NOW - timedelta(days=days)).timestamp()
    os.utime(path, (moment, moment))


def test_only_expired_attempt_logs_are_deleted(tmp_path):
    names = {
        "old-backup-1.log.txt": 90,
        "old-backup-1.err.txt": 90,
        "new-backup-1.log.txt": 1,
        "restic-orchestrator.log": 90,
        "state.json": 90,
    }
    for name, days in names.items():
        path = tmp_path / name
        path.write_text("x", encoding="utf-8")
        _age(path, days)

    result = CleanupManager(tmp_path, retention_days=60, clock=lambda: NOW).cleanup_old_logs()

    assert result.success
    assert sorted(result.files_deleted) == ["old-backup-1.err.txt", "old-backup-1.log.txt"]
    assert result.files_kept == 1
    assert result.total_freed_bytes == 2
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "new-backup-1.log.txt", "restic-orchestrator.log", "state.json",
    ]


def test_zero_retention_keeps_everything(tmp_path):
    path = tmp_path / "old-backup-1.log.txt"
    path.write_text("x", encoding="utf-8")
    _age(path, 1000)

    result = CleanupManager(tmp_path, retention_days=0, clock=lambda: NOW).cleanup_old_logs()

    assert result.success
    assert path.exists()


def test_missing_directory_reports_failure(tmp_path):
    result = CleanupManager(tmp_path / "absent", retention_days=30).cleanup_old_logs()

    assert not result.success
    assert result.error


def test_format_size():
    assert CleanupManager._format_size(512) == "512.0 B"
    assert CleanupManager._format_size(3 * 1024 * 1024) == "3.0 MB"
