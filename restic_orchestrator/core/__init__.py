"""
Core utilities: logging, command execution, result types, retries and run logs.
"""

from .logger import setup_logging, get_logger
from .shell_executor import run_command, run_to_files, check_command_available
from .models import AggregateResult, Phase
from .retry import RetryOutcome, run_with_retry
from .run_log import RunAttempt, RunLogFactory, RunHistory

__all__ = [
    "setup_logging",
    "get_logger",
    "run_command",
    "run_to_files",
    "check_command_available",
    "AggregateResult",
    "Phase",
    "RetryOutcome",
    "run_with_retry",
    "RunAttempt",
    "RunLogFactory",
    "RunHistory",
]
