#!/usr/bin/env python3
"""
Durable orchestration state.

The state file is the only memory shared between invocations. It is read
once at startup and rewritten wholesale after every attempt, always through
a temporary file so an interrupted write keeps the previous record.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

from restic_orchestrator.core.exceptions import StateFileUnreadableError

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = ("last_maintenance_at", "last_deep_maintenance_at")


@dataclass
class OrchestrationState:
    """Cross-run orchestration record"""
    repository_initialized: Optional[bool] = None
    last_maintenance_at: Optional[datetime] = None
    last_deep_maintenance_at: Optional[datetime] = None
    maintenance_counter: int = 0
    last_backup_successful: bool = True
    last_maintenance_successful: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in _TIMESTAMP_FIELDS:
            value = data[name]
            data[name] = value.isoformat() if value else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrchestrationState":
        """Build a state from a (possibly partial) dictionary, defaulting missing keys"""
        state = cls()

        initialized = data.get("repository_initialized")
        state.repository_initialized = None if initialized is None else bool(initialized)

        for name in _TIMESTAMP_FIELDS:
            value = data.get(name)
            setattr(state, name, datetime.fromisoformat(value) if value else None)

        state.maintenance_counter = int(data.get("maintenance_counter", 0) or 0)
        state.last_backup_successful = bool(data.get("last_backup_successful", True))
        state.last_maintenance_successful = bool(data.get("last_maintenance_successful", True))
        return state


class StateStore:
    """Loads and saves OrchestrationState as a JSON file"""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> OrchestrationState:
        """
        Load the state, falling back to defaults.

        A missing file is the first-run case. An unreadable file is logged
        as a warning and never stops the run.
        """
        if not self.path.exists():
            logger.info(f"No state file at {self.path}, starting with defaults")
            return OrchestrationState()

        try:
            return self.read()
        except StateFileUnreadableError as e:
            logger.warning(f"{e}; starting with defaults")
            return OrchestrationState()

    def read(self) -> OrchestrationState:
        """
        Strict read of the state file.

        Raises:
            StateFileUnreadableError: If the file cannot be read or parsed
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("state file does not contain a JSON object")
            return OrchestrationState.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            raise StateFileUnreadableError(f"State file {self.path} is unreadable: {e}") from e

    def save(self, state: OrchestrationState) -> None:
        """Atomically replace the state file with ``state``"""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"State saved to {self.path}")
