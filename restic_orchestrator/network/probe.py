#!/usr/bin/env python3
"""
Network probes used by the connectivity gate.
SystemNetworkProbe queries the host through ip, ping and nmcli.
"""

import logging
import re
import sys
from typing import Optional, Protocol

from restic_orchestrator.core.shell_executor import run_command, check_command_available

logger = logging.getLogger(__name__)


class NetworkProbe(Protocol):
    """Host network state as seen by the connectivity gate"""

    def has_default_route(self) -> bool:
        ...

    def is_reachable(self, host: str) -> bool:
        ...

    def is_metered(self) -> bool:
        ...


class SystemNetworkProbe:
    """Probe backed by system commands"""

    def __init__(self, ping_timeout: int = 5):
        self.ping_timeout = ping_timeout

    def has_default_route(self) -> bool:
        """True if an interface with a default route is up"""
        return self._default_interface() is not None

    def is_reachable(self, host: str) -> bool:
        """Send a single echo request to ``host``"""
        if sys.platform == "win32":
            command = ["ping", "-n", "1", "-w", str(self.ping_timeout * 1000), host]
        else:
            command = ["ping", "-c", "1", "-W", str(self.ping_timeout), host]

        success, _, _ = run_command(command, check=False, timeout=self.ping_timeout + 5)
        logger.debug(f"Ping {host}: {'reachable' if success else 'unreachable'}")
        return success

    def is_metered(self) -> bool:
        """
        True if NetworkManager reports the default interface as metered.

        Hosts without NetworkManager are treated as unmetered.
        """
        interface = self._default_interface()
        if not interface:
            return False

        if not check_command_available("nmcli"):
            logger.debug("nmcli not available, assuming unmetered connection")
            return False

        success, stdout, _ = run_command(
            ["nmcli", "-t", "-f", "GENERAL.METERED", "device", "show", interface],
            check=False
        )
        if not success:
            return False

        # e.g. "GENERAL.METERED:yes (guessed)"
        value = stdout.split(":", 1)[-1].strip().lower()
        return value.startswith("yes")

    def _default_interface(self) -> Optional[str]:
        success, stdout, _ = run_command(["ip", "-o", "route", "show", "default"], check=False)
        if not success or not stdout:
            return None

        match = re.search(r"\bdev\s+(\S+)", stdout)
        return match.group(1) if match else None
