"""
Backup engine invocation.
"""

from .client import ResticEngine
from .command import CommandBuilder, EngineCommand, redact

__all__ = ["ResticEngine", "CommandBuilder", "EngineCommand", "redact"]
