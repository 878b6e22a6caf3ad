#!/usr/bin/env python3
"""
Source resolver.
Maps a configured backup source to a concrete root and the paths to back up.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from restic_orchestrator.config.loader import BackupSource
from restic_orchestrator.core.exceptions import MissingSourceError, MultiPartitionUnsupportedError
from restic_orchestrator.discovery.disk_scanner import VolumeInspector

logger = logging.getLogger(__name__)

GLOB_CHARS = "*?["


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    MISSING = "missing"      # ignorable or attempt failure, depending on policy
    FATAL = "fatal"          # unsupported configuration, source skipped


@dataclass
class ResolvedRoot:
    """A source mapped onto the filesystem for this run"""
    source_identifier: str
    root_path: Path
    snapshot_capable: bool
    include_paths: List[Path] = field(default_factory=list)


@dataclass
class SourceResolution:
    """Outcome of resolving one source"""
    source: BackupSource
    status: ResolutionStatus
    root: Optional[ResolvedRoot] = None
    reason: str = ""
    missing_paths: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED


class SourceResolver:
    """Resolves BackupSource entries through a VolumeInspector"""

    def __init__(self, inspector: VolumeInspector):
        self.inspector = inspector

    def resolve(self, source: BackupSource) -> SourceResolution:
        """
        Resolve a source to its root and include paths.

        Args:
            source: Configured backup source

        Returns:
            SourceResolution; missing sub-paths are listed in ``missing_paths``
            for the caller to apply the missing-source policy
        """
        try:
            root_path = self._resolve_root(source.identifier)
        except MissingSourceError as e:
            return SourceResolution(source=source, status=ResolutionStatus.MISSING, reason=str(e))
        except MultiPartitionUnsupportedError as e:
            return SourceResolution(source=source, status=ResolutionStatus.FATAL, reason=str(e))

        include_paths, missing = self._expand_sub_paths(root_path, source.sub_paths)

        if source.sub_paths and not include_paths:
            return SourceResolution(
                source=source,
                status=ResolutionStatus.MISSING,
                reason=f"none of the sub-paths of '{source.identifier}' exist under {root_path}",
                missing_paths=missing,
            )

        snapshot_capable = self.inspector.supports_snapshots(root_path)
        logger.debug(
            f"Resolved source '{source.identifier}' to {root_path} "
            f"(snapshot capable: {snapshot_capable}, {len(include_paths)} path(s))"
        )

        return SourceResolution(
            source=source,
            status=ResolutionStatus.RESOLVED,
            root=ResolvedRoot(
                source_identifier=source.identifier,
                root_path=root_path,
                snapshot_capable=snapshot_capable,
                include_paths=include_paths,
            ),
            missing_paths=missing,
        )

    def _resolve_root(self, identifier: str) -> Path:
        """
        Raises:
            MissingSourceError: Nothing matches the identifier
            MultiPartitionUnsupportedError: More than one mount point matches
        """
        candidate = Path(identifier).expanduser()
        if candidate.exists():
            return candidate

        mount_points = self.inspector.find_mount_points(identifier)

        if not mount_points:
            raise MissingSourceError(f"source '{identifier}' not found as a path or attached media")

        if len(mount_points) > 1:
            raise MultiPartitionUnsupportedError(identifier, mount_points)

        return mount_points[0]

    @staticmethod
    def _expand_sub_paths(root: Path, sub_paths) -> Tuple[List[Path], List[str]]:
        """Expand sub-paths (glob aware) against the root; invalid patterns count as missing"""
        if not sub_paths:
            return [root], []

        include: List[Path] = []
        missing: List[str] = []

        for sub_path in sub_paths:
            relative = sub_path.lstrip("/\\")

            if any(c in relative for c in GLOB_CHARS):
                try:
                    matches = sorted(root.glob(relative))
                except ValueError as e:
                    # e.g. "**" inside a path component
                    logger.warning(f"Invalid sub-path pattern '{sub_path}': {e}")
                    matches = []
            else:
                candidate = root / relative
                matches = [candidate] if candidate.exists() else []

            if not matches:
                missing.append(sub_path)
                continue

            for match in matches:
                if match not in include:
                    include.append(match)

        return include, missing
