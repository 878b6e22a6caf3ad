"""
Backup orchestration module.
"""

from .backup_orchestrator import BackupOrchestrator, RunSummary
from .backup_runner import BackupRunner
from .cleanup_manager import CleanupManager, CleanupResult

__all__ = [
    "BackupOrchestrator",
    "RunSummary",
    "BackupRunner",
    "CleanupManager",
    "CleanupResult",
]
