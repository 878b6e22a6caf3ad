"""
Persistent orchestration state.
"""

from .store import OrchestrationState, StateStore

__all__ = ["OrchestrationState", "StateStore"]
