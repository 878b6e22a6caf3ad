#!/usr/bin/env python3
"""
Connectivity gate.
Decides whether the repository endpoint is reachable (and unmetered)
before any engine command is issued.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from restic_orchestrator.core.exceptions import ConnectivityUnavailableError
from restic_orchestrator.core.run_log import RunAttempt
from restic_orchestrator.network.probe import NetworkProbe

logger = logging.getLogger(__name__)

# Cloud backends without a per-repository host are probed through a fixed endpoint
WELL_KNOWN_HOSTS = {
    "b2": "api.backblazeb2.com",
    "gs": "storage.googleapis.com",
    "azure": "blob.core.windows.net",
}

URL_SCHEMES = ("s3", "rest")

REASON_NO_ROUTE = "no active network interface with a default route"
REASON_METERED = "the active connection is metered"


def derive_repository_host(repository: str) -> Optional[str]:
    """
    Derive the hostname to probe from a repository locator.

    Examples:
        s3:https://s3.amazonaws.com/bucket  -> s3.amazonaws.com
        s3:minio.local:9000/bucket          -> minio.local
        rest:https://user:pw@host:8000/     -> host
        sftp:user@host:/srv/restic          -> host
        sftp://user@host:2222//srv/restic   -> host
        b2:bucket:path                      -> api.backblazeb2.com

    Returns:
        Hostname, or None if the locator has no probeable host
    """
    scheme, sep, rest = repository.partition(":")
    if not sep or not rest:
        return None

    scheme = scheme.lower()

    if scheme in WELL_KNOWN_HOSTS:
        return WELL_KNOWN_HOSTS[scheme]

    if scheme in URL_SCHEMES:
        if "://" in rest:
            return urlparse(rest).hostname
        host = rest.split("/", 1)[0].split(":", 1)[0]
        return host or None

    if scheme == "sftp":
        if rest.startswith("//"):
            return urlparse(f"sftp:{rest}").hostname
        target = rest.split(":", 1)[0]
        host = target.rsplit("@", 1)[-1]
        return host or None

    return None


class ConnectivityGate:
    """Retrying reachability check for the repository"""

    def __init__(
        self,
        probe: NetworkProbe,
        delay_seconds: float = 30,
        avoid_metered: bool = False,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.probe = probe
        self.delay_seconds = delay_seconds
        self.avoid_metered = avoid_metered
        self.sleep = sleep
        self.last_blocking_reason: Optional[str] = None

    def check(
        self,
        repository: str,
        max_attempts: int,
        sink: Optional[RunAttempt] = None
    ) -> bool:
        """
        Check that the repository can be used.

        Args:
            repository: Repository locator
            max_attempts: Number of checks; <= 0 disables the gate
            sink: Attempt log receiving progress and failure lines

        Returns:
            True if the repository is local or reachable
        """
        self.last_blocking_reason = None

        if max_attempts <= 0:
            logger.debug("Connectivity check disabled")
            return True

        if Path(repository).exists():
            logger.debug(f"Repository {repository} is a local path, skipping connectivity check")
            return True

        host = derive_repository_host(repository)
        if not host:
            self.last_blocking_reason = f"cannot derive a host name from repository '{repository}'"
            self._error(sink, f"Connectivity check failed: {self.last_blocking_reason}")
            return False

        for attempt in range(1, max_attempts + 1):
            reason = self._blocking_condition(host)
            if reason is None:
                if attempt > 1:
                    self._progress(sink, f"Connection to {host} available")
                logger.info(f"Repository host {host} is reachable")
                return True

            self.last_blocking_reason = reason
            if attempt < max_attempts:
                self._progress(
                    sink,
                    f"Waiting for connection to {host}: {reason} "
                    f"(check {attempt}/{max_attempts}, retrying in {self.delay_seconds:.0f}s)"
                )
                self.sleep(self.delay_seconds)

        self._error(
            sink,
            f"Connection to {host} not available after {max_attempts} checks: "
            f"{self.last_blocking_reason}"
        )
        return False

    def ensure_available(
        self,
        repository: str,
        max_attempts: int,
        sink: Optional[RunAttempt] = None
    ) -> None:
        """
        Like check(), but raise when the repository stays unavailable.

        Raises:
            ConnectivityUnavailableError: If every check failed
        """
        if not self.check(repository, max_attempts, sink):
            raise ConnectivityUnavailableError(repository, self.last_blocking_reason or "unknown")

    def _blocking_condition(self, host: str) -> Optional[str]:
        if not self.probe.has_default_route():
            return REASON_NO_ROUTE
        if not self.probe.is_reachable(host):
            return f"repository host {host} is unreachable"
        if self.avoid_metered and self.probe.is_metered():
            return REASON_METERED
        return None

    @staticmethod
    def _progress(sink: Optional[RunAttempt], message: str) -> None:
        logger.info(message)
        if sink is not None:
            sink.log(message)

    @staticmethod
    def _error(sink: Optional[RunAttempt], message: str) -> None:
        if sink is not None:
            sink.error(message)
        else:
            logger.error(message)
