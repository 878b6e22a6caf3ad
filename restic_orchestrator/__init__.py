"""
restic-orchestrator: scheduled restic backups with retries, connectivity
gating and periodic repository maintenance.
"""

__version__ = "1.0.0"
