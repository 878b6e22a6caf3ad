"""
Repository connectivity checks.
"""

from .connectivity import ConnectivityGate, derive_repository_host
from .probe import NetworkProbe, SystemNetworkProbe

__all__ = ["ConnectivityGate", "derive_repository_host", "NetworkProbe", "SystemNetworkProbe"]
