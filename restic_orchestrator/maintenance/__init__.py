"""
Repository maintenance: scheduling policy and runner.
"""

from .maintenance_runner import MaintenanceRunner
from .policy import is_maintenance_due, select_deep_check

__all__ = ["MaintenanceRunner", "is_maintenance_due", "select_deep_check"]
