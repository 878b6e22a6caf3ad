#!/usr/bin/env python3
"""
Disk scanner for resolving external media to mount points.
Uses system commands (lsblk, findmnt, fsutil) to identify storage devices
by serial number, disk name or volume label.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional, Dict, Any, Protocol
from dataclasses import dataclass

from restic_orchestrator.core.shell_executor import run_command

logger = logging.getLogger(__name__)

# Filesystems on which the engine can request a consistent point-in-time view
SNAPSHOT_FILESYSTEMS = {"ntfs", "refs"}


class VolumeInspector(Protocol):
    """Capability lookup used by the source resolver"""

    def find_mount_points(self, identifier: str) -> List[Path]:
        ...

    def supports_snapshots(self, path: Path) -> bool:
        ...


@dataclass
class DiskInfo:
    """Information about a disk or partition"""
    name: str              # e.g., "sda1", "sdb"
    device_path: Path      # e.g., "/dev/sda1"
    size_gb: float         # Size in gigabytes
    filesystem: str        # e.g., "ext4", "vfat", "ntfs"
    label: str             # Volume label (if available)
    serial: str            # Serial number, inherited from the parent disk
    mountpoint: str        # Current mount point (if mounted)
    device_type: str       # "disk", "part", ...
    parent_disk: str       # Parent disk name (e.g., "sda" for "sda1")


class DiskScanner:
    """lsblk based implementation of VolumeInspector"""

    LSBLK_COLUMNS = "NAME,SIZE,TYPE,MOUNTPOINT,LABEL,SERIAL,FSTYPE"

    def scan_disks(self) -> List[DiskInfo]:
        """
        Scan the system for block devices.

        Returns:
            List of DiskInfo objects, loop and RAM devices excluded
        """
        devices = self._get_all_block_devices()

        disks = []
        for device in devices:
            if device["name"].startswith(("loop", "ram", "zram")):
                continue
            disks.append(self._to_disk_info(device))

        logger.debug(f"Found {len(disks)} disk(s)/partition(s)")
        return disks

    def find_mount_points(self, identifier: str) -> List[Path]:
        """
        Find the mount points of the media matching ``identifier``.

        A match on a whole disk includes the mount points of all of its
        partitions, so multi-partition media yield several entries.

        Args:
            identifier: Serial number, disk name or volume label

        Returns:
            Distinct mount points, in lsblk order
        """
        wanted = identifier.strip().lower()
        if not wanted:
            return []

        disks = self.scan_disks()
        matched = {
            d.name for d in disks
            if wanted in (d.name.lower(), d.label.lower(), d.serial.lower())
        }

        mount_points: List[Path] = []
        for disk in disks:
            related = disk.name in matched or disk.parent_disk in matched
            if related and disk.mountpoint:
                path = Path(disk.mountpoint)
                if path not in mount_points:
                    mount_points.append(path)

        logger.debug(f"Identifier '{identifier}' matches mount points: {mount_points}")
        return mount_points

    def supports_snapshots(self, path: Path) -> bool:
        """
        Check whether a consistent-snapshot backup can be requested for ``path``.
        Only volume shadow copies on Windows are supported by the engine.
        """
        if sys.platform != "win32":
            return False

        filesystem = self.filesystem_type(path)
        return bool(filesystem) and filesystem.lower() in SNAPSHOT_FILESYSTEMS

    def filesystem_type(self, path: Path) -> Optional[str]:
        """Return the filesystem type of the volume holding ``path``"""
        if sys.platform == "win32":
            drive = Path(path).drive or str(path)[:2]
            success, stdout, _ = run_command(["fsutil", "fsinfo", "volumeinfo", drive], check=False)
            if not success:
                return None
            match = re.search(r"File System Name\s*:\s*(\S+)", stdout)
            return match.group(1) if match else None

        success, stdout, _ = run_command(
            ["findmnt", "-n", "-o", "FSTYPE", "--target", str(path)], check=False
        )
        if not success:
            return None
        return stdout.strip() or None

    def _get_all_block_devices(self) -> List[Dict[str, Any]]:
        """Get list of all block devices using lsblk"""
        success, stdout, stderr = run_command(["lsblk", "-J", "-o", self.LSBLK_COLUMNS], check=False)

        if success and stdout:
            return self._parse_lsblk_json(stdout)

        logger.error(f"Failed to get block device list: {stderr}")
        return []

    def _parse_lsblk_json(self, json_output: str) -> List[Dict[str, Any]]:
        """Parse lsblk JSON output"""
        try:
            data = json.loads(json_output)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse lsblk JSON: {e}")
            return []
        return self._extract_devices_from_tree(data.get("blockdevices", []))

    def _extract_devices_from_tree(
        self,
        devices: List[Dict],
        parent: str = "",
        parent_serial: str = ""
    ) -> List[Dict]:
        """Recursively flatten the lsblk tree; partitions inherit the disk serial"""
        result = []

        for device in devices:
            serial = device.get("serial") or parent_serial
            mountpoint = device.get("mountpoint")
            if not mountpoint:
                # lsblk >= 2.37 may report a list instead
                mountpoints = [m for m in (device.get("mountpoints") or []) if m]
                mountpoint = mountpoints[0] if mountpoints else ""

            device_info = {
                "name": device.get("name") or "",
                "size": device.get("size") or "",
                "type": device.get("type") or "",
                "mountpoint": mountpoint or "",
                "label": device.get("label") or "",
                "serial": serial or "",
                "fstype": device.get("fstype") or "",
                "parent": parent,
            }
            result.append(device_info)

            if device.get("children"):
                result.extend(self._extract_devices_from_tree(
                    device["children"],
                    parent=device_info["name"],
                    parent_serial=device_info["serial"]
                ))

        return result

    def _to_disk_info(self, device: Dict[str, Any]) -> DiskInfo:
        name = device["name"]
        return DiskInfo(
            name=name,
            device_path=Path(f"/dev/{name}"),
            size_gb=self._parse_size_to_gb(device["size"]),
            filesystem=device["fstype"],
            label=device["label"],
            serial=device["serial"],
            mountpoint=device["mountpoint"],
            device_type=device["type"],
            parent_disk=device["parent"] or name,
        )

    def _parse_size_to_gb(self, size_str: str) -> float:
        """Convert size string (e.g., '10G', '500M') to gigabytes"""
        if not size_str:
            return 0.0

        size_str = str(size_str).strip().upper()

        match = re.match(r'^(\d+\.?\d*)([KMGTP]?)B?$', size_str)
        if not match:
            return 0.0

        number = float(match.group(1))
        unit = match.group(2)

        multipliers = {"K": 1/1024/1024, "M": 1/1024, "G": 1, "T": 1024, "P": 1024*1024}
        multiplier = multipliers.get(unit, 1)

        return number * multiplier
