#!/usr/bin/env python3
"""
Cleanup manager for per-attempt log files.
Deletes attempt logs older than the configured retention window.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from restic_orchestrator.core.run_log import SUCCESS_SUFFIX, ERROR_SUFFIX

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Result of cleanup operation"""
    success: bool
    files_deleted: List[str] = field(default_factory=list)
    files_kept: int = 0
    total_freed_bytes: int = 0
    error: Optional[str] = None


class CleanupManager:
    """
    Removes attempt logs (``*.log.txt`` / ``*.err.txt``) past their retention.
    The application log, state file and run history are never touched.
    """

    def __init__(
        self,
        log_dir: Path,
        retention_days: int,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            log_dir: Directory holding the attempt logs
            retention_days: Age in days after which logs are deleted; 0 keeps everything
            clock: Source of the current time
        """
        self.log_dir = log_dir
        self.retention_days = retention_days
        self.clock = clock

    def cleanup_old_logs(self) -> CleanupResult:
        """
        Delete attempt logs older than the retention window.

        Returns:
            CleanupResult listing the deleted files
        """
        if self.retention_days <= 0:
            logger.debug("Log retention disabled, nothing to clean up")
            return CleanupResult(success=True)

        try:
            log_files = self._get_log_files()
        except OSError as e:
            logger.error(f"Error listing log files in {self.log_dir}: {e}")
            return CleanupResult(success=False, error=str(e))

        cutoff = (self.clock() - timedelta(days=self.retention_days)).timestamp()
        result = CleanupResult(success=True)

        for file_path, mtime, size in log_files:
            if mtime >= cutoff:
                result.files_kept += 1
                continue
            try:
                file_path.unlink()
                result.files_deleted.append(file_path.name)
                result.total_freed_bytes += size
                logger.debug(f"Deleted old log: {file_path.name}")
            except OSError as e:
                logger.error(f"Failed to delete {file_path.name}: {e}")
                result.success = False
                result.error = str(e)

        if result.files_deleted:
            logger.info(
                f"Log cleanup completed: deleted {len(result.files_deleted)} file(s), "
                f"kept {result.files_kept}, freed {self._format_size(result.total_freed_bytes)}"
            )
        return result

    def _get_log_files(self) -> List[Tuple[Path, float, int]]:
        """List attempt logs as (path, modification_time, size)"""
        files = []
        for file_path in self.log_dir.iterdir():
            if not file_path.is_file():
                continue
            if not file_path.name.endswith((SUCCESS_SUFFIX, ERROR_SUFFIX)):
                continue
            stat = file_path.stat()
            files.append((file_path, stat.st_mtime, stat.st_size))
        return files

    @staticmethod
    def _format_size(size_bytes: int) -> str:
        """Format size in human-readable format"""
        size = float(size_bytes)
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if size < 1024.0:
                return f"{size:.1f} {unit}"
            size /= 1024.0
        return f"{size:.1f} PB"
