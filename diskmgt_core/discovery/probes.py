"""
Content Probes - Inspect what lives on a partition.

Feeds the auto-labeler and disk inspection with read-only signals:
- Container storage (LXD pools and markers under the mount)
- Operating system installs (os-release, Windows, macOS markers)
- Boot role (parted flags, /boot mounts)
- Filesystem volume label (FAT/NTFS family only)
- Top-level directory names
- Whole-disk reports (partition table, boot partitions, OS installs)

Probes only look at filesystems that are already mounted; nothing here
mounts, writes or modifies a device.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
import csv
import io
import os
import re

import psutil

from .scanners.base import BaseScanner
from .schema import DeviceNode, parent_disk, partition_number, partitions_of, strip_partition_suffix


CONTAINER_MARKERS = ('lxd', 'storage', 'lxd/storage-pools')
BOOT_FLAGS = ('boot', 'esp', 'bios_grub')
LABELED_FS_TYPES = frozenset({
    'vfat', 'fat', 'fat12', 'fat16', 'fat32', 'msdos', 'exfat', 'ntfs', 'ntfs3',
})
UNKNOWN_LINUX = 'Linux (Unknown Distribution)'


@dataclass(frozen=True)
class ContainerStorage:
    """Container storage found on a mount."""
    is_detected: bool = False
    engine: str = "LXD"
    pool_name: Optional[str] = None
    container_count: int = 0


@dataclass(frozen=True)
class ContentProbe:
    """Read-only content signals for one partition."""
    container: ContainerStorage = field(default_factory=ContainerStorage)
    os_label: Optional[str] = None
    boot_flagged: bool = False
    volume_label: Optional[str] = None
    hardware_model: Optional[str] = None
    top_level_entries: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DiskReport:
    """Read-only overview of one whole disk."""
    disk: DeviceNode
    partition_table: Optional[str] = None           # e.g. "gpt", "msdos"
    boot_partitions: Tuple[Tuple[int, Tuple[str, ...]], ...] = ()
    partitions: Tuple[DeviceNode, ...] = ()
    os_installs: Tuple[Tuple[str, str], ...] = ()   # (device path, OS label)
    container: ContainerStorage = field(default_factory=ContainerStorage)

    @property
    def bootable(self) -> bool:
        return bool(self.boot_partitions)


# ─────────────────────────────────────────────────────────────
# Parsers
# ─────────────────────────────────────────────────────────────

def parse_os_release(text: str) -> str:
    """Return PRETTY_NAME (or NAME) from an os-release file."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        m = re.match(r'^\s*([A-Z_]+)\s*=\s*(.*?)\s*$', line)
        if m:
            values[m.group(1)] = m.group(2).strip('"\'')
    return values.get('PRETTY_NAME') or values.get('NAME') or UNKNOWN_LINUX


def parse_parted_flags(text: str) -> Dict[int, List[str]]:
    """
    Parse `parted -s <disk> print` output into {partition number: boot flags}.

    Only partitions carrying at least one of BOOT_FLAGS are returned.
    """
    flags: Dict[int, List[str]] = {}
    in_table = False
    for line in text.splitlines():
        if re.match(r'^\s*Number\s+Start\s+End', line):
            in_table = True
            continue
        if not in_table or not line.strip():
            continue
        parts = line.split()
        if len(parts) < 4 or not parts[0].isdigit():
            continue
        found = re.findall(r'\b(boot|esp|bios_grub)\b', line)
        if found:
            flags[int(parts[0])] = found
    return flags


def parse_lxc_storage_csv(text: str, mount_path: str) -> List[Dict[str, str]]:
    """
    Parse `lxc storage list --format csv` and keep pools on mount_path.

    Columns: name, driver, source, description, used-by.
    """
    pools = []
    for row in csv.reader(io.StringIO(text)):
        if not row or not row[0].strip():
            continue
        row = row + [''] * (5 - len(row))
        name, driver, source, description, used = (c.strip() for c in row[:5])
        if source and (mount_path in source or source in mount_path):
            pools.append({
                'name': name,
                'driver': driver or 'unknown',
                'source': source,
                'description': description,
                'used': used or 'unknown',
            })
    return pools


def parse_partition_table(text: str) -> Optional[str]:
    """Partition table type from `parted -s <disk> print` ("gpt", "msdos", "loop", ...)."""
    m = re.search(r"^Partition Table:\s*(\S+)", text, re.MULTILINE)
    if not m or m.group(1) == "unknown":
        return None
    return m.group(1)


def count_csv_rows(text: str) -> int:
    return sum(1 for row in csv.reader(io.StringIO(text)) if row and row[0].strip())


# ─────────────────────────────────────────────────────────────
# Prober
# ─────────────────────────────────────────────────────────────

class ContentProber(BaseScanner):
    """
    Collects ContentProbe snapshots for partitions.

    Usage:
        prober = ContentProber()
        probe = prober.collect(node, nodes)
        report = prober.inspect_disk(disk, nodes)
    """

    def detect_container_storage(self, mount_path: Optional[str]) -> ContainerStorage:
        """Detect LXD storage under a mount point."""
        if not mount_path or not mount_path.startswith('/'):
            return ContainerStorage()
        if not any(os.path.isdir(os.path.join(mount_path, m)) for m in CONTAINER_MARKERS):
            return ContainerStorage()

        pool_name = None
        code, stdout, _ = self.run_command(["lxc", "storage", "list", "--format", "csv"])
        if code == 0:
            pools = parse_lxc_storage_csv(stdout, mount_path)
            if pools:
                pool_name = pools[0]['name']

        containers = 0
        code, stdout, _ = self.run_command(["lxc", "list", "--format", "csv", "-c", "ns"])
        if code == 0:
            containers = count_csv_rows(stdout)

        self.logger.debug(f"LXD storage on {mount_path}: pool={pool_name} containers={containers}")
        return ContainerStorage(is_detected=True, engine="LXD", pool_name=pool_name, container_count=containers)

    def detect_operating_system(self, device: str, mount_path: Optional[str]) -> Optional[str]:
        """Identify an OS install on an already-mounted partition."""
        if not mount_path or not mount_path.startswith('/'):
            return None
        os_label = None
        os_release = self.read_file(os.path.join(mount_path, 'etc', 'os-release'))
        if os_release is not None:
            os_label = parse_os_release(os_release)
        if any(os.path.isdir(os.path.join(mount_path, d)) for d in ('Windows', 'windows')):
            os_label = 'Windows'
        if os.path.isdir(os.path.join(mount_path, 'System', 'Library', 'CoreServices')):
            os_label = 'macOS'
        if os_label:
            self.logger.debug(f"Detected {os_label} on {device}", extra={"device": device})
        return os_label

    def is_boot_flagged(self, device: str, disk_device: Optional[str] = None) -> bool:
        """True if the partition carries a boot/esp/bios_grub flag or is mounted under /boot."""
        disk_device = disk_device or strip_partition_suffix(device)
        number = partition_number(device)
        if number is not None and disk_device != device:
            code, stdout, _ = self.run_command(["parted", "-s", disk_device, "print"])
            if code == 0 and number in parse_parted_flags(stdout):
                return True
        return any(
            mount.startswith('/boot')
            for mount in self.mounts_for(device)
        )

    def volume_label(self, device: str, fs_type: Optional[str]) -> Optional[str]:
        """Filesystem volume label, only queried for FAT/NTFS-family filesystems."""
        if (fs_type or '').lower() not in LABELED_FS_TYPES:
            return None
        code, stdout, _ = self.run_command(["blkid", "-s", "LABEL", "-o", "value", device])
        label = stdout.strip() if code == 0 else ''
        return label or None

    def list_entries(self, mount_path: Optional[str], limit: int = 10) -> Tuple[str, ...]:
        """First `limit` top-level names under a mount, sorted."""
        if not mount_path or not mount_path.startswith('/'):
            return ()
        try:
            return tuple(sorted(os.listdir(mount_path))[:limit])
        except OSError as e:
            self.logger.debug(f"Cannot list {mount_path}: {e}")
            return ()

    def mounts_for(self, device: str) -> List[str]:
        try:
            return [p.mountpoint for p in psutil.disk_partitions(all=True) if p.device == device]
        except OSError as e:
            self.logger.debug(f"Cannot read mount table: {e}")
            return []

    def collect(self, node: DeviceNode, nodes: Iterable[DeviceNode] = ()) -> ContentProbe:
        """Gather every signal for one partition."""
        nodes = list(nodes)
        disk = parent_disk(node, nodes)
        disk_device = disk.device_path if disk and disk is not node else None
        mount_path = self._mount_of(node)

        return ContentProbe(
            container=self.detect_container_storage(mount_path),
            os_label=self.detect_operating_system(node.device_path, mount_path),
            boot_flagged=self.is_boot_flagged(node.device_path, disk_device),
            volume_label=self.volume_label(node.device_path, node.fs_type),
            hardware_model=node.model or (disk.model if disk else None),
            top_level_entries=self.list_entries(mount_path),
        )

    def inspect_disk(self, disk: DeviceNode, nodes: Iterable[DeviceNode]) -> DiskReport:
        """Partition table, boot partitions, OS installs and container storage of one disk."""
        nodes = list(nodes)
        table = None
        flags: Dict[int, List[str]] = {}
        code, stdout, stderr = self.run_command(["parted", "-s", disk.device_path, "print"])
        if code == 0:
            table = parse_partition_table(stdout)
            flags = parse_parted_flags(stdout)
        else:
            self.logger.debug(f"parted failed on {disk.device_path}: {stderr.strip()}",
                              extra={"device": disk.device_path})

        partitions = partitions_of(disk, nodes)
        os_installs = []
        container = ContainerStorage()
        for part in partitions:
            mount_path = self._mount_of(part)
            os_label = self.detect_operating_system(part.device_path, mount_path)
            if os_label:
                os_installs.append((part.device_path, os_label))
            if not container.is_detected:
                container = self.detect_container_storage(mount_path)

        return DiskReport(
            disk=disk,
            partition_table=table,
            boot_partitions=tuple((num, tuple(f)) for num, f in sorted(flags.items())),
            partitions=tuple(partitions),
            os_installs=tuple(os_installs),
            container=container,
        )

    def _mount_of(self, node: DeviceNode) -> Optional[str]:
        """lsblk mount path, else the first mount psutil knows for the device."""
        if node.is_mounted:
            return node.mount_path
        mounts = self.mounts_for(node.device_path)
        return mounts[0] if mounts else None
