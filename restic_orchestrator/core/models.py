"""
Shared result types for backup and maintenance attempts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class Phase(str, Enum):
    """Orchestration phase"""
    BACKUP = "backup"
    MAINTENANCE = "maintenance"
    INIT = "init"            # one-off repository initialisation from the CLI

    @property
    def title(self) -> str:
        return self.value.capitalize()


@dataclass
class AggregateResult:
    """Outcome of one backup or maintenance attempt"""
    success: bool = True
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    retryable: bool = True   # False aborts the phase for this invocation

    def record_error(self, message: str) -> None:
        """Record an error and fail the attempt"""
        self.errors.append(message)
        self.error_count += 1
        self.success = False

    def record_warning(self, message: str) -> None:
        self.warnings.append(message)

    def abort(self, message: str) -> None:
        """Fail the attempt and stop retrying the phase"""
        self.record_error(message)
        self.retryable = False

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0
