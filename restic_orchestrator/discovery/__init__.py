"""
Discovery of backup source roots on paths and external media.
"""

from .disk_scanner import DiskScanner, DiskInfo, VolumeInspector
from .source_resolver import ResolutionStatus, ResolvedRoot, SourceResolution, SourceResolver

__all__ = [
    "DiskScanner",
    "DiskInfo",
    "VolumeInspector",
    "ResolutionStatus",
    "ResolvedRoot",
    "SourceResolution",
    "SourceResolver",
]
