#!/usr/bin/env python3
"""
Per-attempt log sinks and the rolling run history.

Every attempt writes two append-only text files into the log directory:
``<timestamp>-<phase>-<n>.log.txt`` for progress and engine stdout, and
``<timestamp>-<phase>-<n>.err.txt`` for errors and engine stderr. They are
gathered into the report once the attempt is over.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Dict, Any

from restic_orchestrator.core.models import AggregateResult, Phase

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
SUCCESS_SUFFIX = ".log.txt"
ERROR_SUFFIX = ".err.txt"


@dataclass
class RunAttempt:
    """One retry iteration of a phase and its two log sinks"""
    phase: Phase
    attempt_number: int
    success_log: Path
    error_log: Path
    clock: Callable[[], datetime] = datetime.now

    def log(self, message: str) -> None:
        """Append a progress line to the success log"""
        self._append(self.success_log, message)

    def warning(self, message: str) -> None:
        """Append a warning line to the success log"""
        logger.warning(message)
        self._append(self.success_log, f"[WARNING] {message}")

    def error(self, message: str) -> None:
        """Append an error line to the error log"""
        logger.error(message)
        self._append(self.error_log, f"[ERROR] {message}")

    def read_success_log(self) -> str:
        return self._read(self.success_log)

    def read_error_log(self) -> str:
        return self._read(self.error_log)

    def has_errors(self) -> bool:
        return self.error_log.exists() and self.error_log.stat().st_size > 0

    def _append(self, path: Path, message: str) -> None:
        stamp = self.clock().strftime("%Y-%m-%d %H:%M:%S")
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{stamp} {message}\n")

    @staticmethod
    def _read(path: Path) -> str:
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8", errors="replace")


class RunLogFactory:
    """Creates RunAttempt sinks inside the log directory"""

    def __init__(self, log_dir: Path, clock: Callable[[], datetime] = datetime.now):
        self.log_dir = log_dir
        self.clock = clock

    def open_attempt(self, phase: Phase, attempt_number: int) -> RunAttempt:
        stamp = self.clock().strftime(TIMESTAMP_FORMAT)
        base = f"{stamp}-{phase.value}-{attempt_number}"
        attempt = RunAttempt(
            phase=phase,
            attempt_number=attempt_number,
            success_log=self.log_dir / f"{base}{SUCCESS_SUFFIX}",
            error_log=self.log_dir / f"{base}{ERROR_SUFFIX}",
            clock=self.clock,
        )
        attempt.success_log.touch()
        attempt.error_log.touch()
        return attempt


class RunHistory:
    """
    Rolling record of attempt outcomes (JSON lines), trimmed to ``limit`` entries.
    Used to quote success rates in reports.
    """

    def __init__(self, path: Path, limit: int = 200):
        self.path = path
        self.limit = limit

    def append(
        self,
        attempt: RunAttempt,
        result: AggregateResult,
        when: datetime
    ) -> None:
        entries = self.entries()
        entries.append({
            "timestamp": when.isoformat(),
            "phase": attempt.phase.value,
            "attempt": attempt.attempt_number,
            "success": result.success,
            "errors": result.error_count,
        })
        entries = entries[-self.limit:] if self.limit > 0 else entries

        try:
            with open(self.path, "w", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning(f"Could not update run history {self.path}: {e}")

    def entries(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []

        entries = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(json.loads(line))
                    except json.JSONDecodeError:
                        logger.debug(f"Skipping malformed history line: {line!r}")
        except OSError as e:
            logger.warning(f"Could not read run history {self.path}: {e}")
        return entries

    def success_rate(self, phase: Phase) -> Optional[float]:
        """Percentage of successful attempts for a phase, or None without history"""
        relevant = [e for e in self.entries() if e.get("phase") == phase.value]
        if not relevant:
            return None
        succeeded = sum(1 for e in relevant if e.get("success"))
        return succeeded / len(relevant) * 100
