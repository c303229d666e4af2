"""
Device Schema - Live block-device model produced by every scan.

DeviceNodes are ephemeral: they are rebuilt from OS state on every scan and
never persisted. The persistent identity of a drive is its filesystem UUID,
see registry/records.py.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional
import re


NO_UUID_PREFIX = "NO-UUID-"
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


class DeviceKind(str, Enum):
    """Block device kinds tracked by the scanner."""
    DISK = "disk"
    PARTITION = "partition"


@dataclass(frozen=True)
class DeviceNode:
    """
    A live, kernel-reported block device or partition.

    Partitions are linked to their disk implicitly: a partition's device
    path is prefixed by its disk's device path (/dev/sdb -> /dev/sdb1).
    """
    name: str                          # Kernel name, e.g. "sdb1"
    size_bytes: int
    kind: DeviceKind
    mount_path: Optional[str] = None   # Absent when unmounted
    fs_type: Optional[str] = None
    model: Optional[str] = None        # Disk level only
    fs_uuid: Optional[str] = None

    @property
    def device_path(self) -> str:
        return f"/dev/{self.name}"

    @property
    def size(self) -> str:
        """Human-readable size, e.g. 3.7GB."""
        return format_size(self.size_bytes)

    @property
    def has_stable_uuid(self) -> bool:
        return bool(self.fs_uuid)

    @property
    def key(self) -> str:
        """
        Display key: the filesystem UUID, or a NO-UUID placeholder.

        Placeholders depend on the kernel name, which the OS may reassign
        between scans, so they are never used as registry keys.
        """
        return self.fs_uuid or f"{NO_UUID_PREFIX}{self.name}"

    @property
    def is_partition(self) -> bool:
        return self.kind == DeviceKind.PARTITION

    @property
    def is_mounted(self) -> bool:
        return bool(self.mount_path)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "device": self.device_path,
            "size_bytes": self.size_bytes,
            "size": self.size,
            "kind": self.kind.value,
            "mount_path": self.mount_path,
            "fs_type": self.fs_type,
            "model": self.model,
            "uuid": self.fs_uuid,
            "key": self.key,
        }


def format_size(size_bytes: int) -> str:
    """Format bytes on the 1024-based ladder with one decimal (1536 -> 1.5KB)."""
    size = float(max(int(size_bytes), 0))
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{size:.1f}{SIZE_UNITS[unit]}"


def is_placeholder_key(key: Optional[str]) -> bool:
    return not key or key.startswith(NO_UUID_PREFIX)


def drive_type_for(name: str) -> str:
    """Guess a drive category from the kernel device name."""
    if name.startswith('mmcblk'):
        return 'SD Card'
    if name.startswith('nvme'):
        return 'NVMe SSD'
    if name.startswith('sd'):
        return 'USB/SATA Drive'
    return 'Unknown'


def strip_partition_suffix(device_path: str) -> str:
    """
    Derive a disk path from a partition path without a scan.

    /dev/sdb1 -> /dev/sdb, /dev/nvme0n1p2 -> /dev/nvme0n1, /dev/mmcblk0p1 -> /dev/mmcblk0
    """
    m = re.match(r'^(.*\d)p\d+$', device_path)
    if m:
        return m.group(1)
    return re.sub(r'\d+$', '', device_path)


def partition_number(device_path: str) -> Optional[int]:
    """Partition number of a partition path (/dev/sdb2 -> 2, /dev/nvme0n1p3 -> 3)."""
    m = re.match(r'^.*\dp(\d+)$', device_path) or re.search(r'(\d+)$', device_path)
    return int(m.group(1)) if m else None


def parent_disk(node: DeviceNode, nodes: Iterable[DeviceNode]) -> Optional[DeviceNode]:
    """Find the disk whose device path is the longest prefix of the node's path."""
    if node.kind == DeviceKind.DISK:
        return node
    best: Optional[DeviceNode] = None
    for candidate in nodes:
        if candidate.kind != DeviceKind.DISK:
            continue
        if node.device_path.startswith(candidate.device_path):
            if best is None or len(candidate.device_path) > len(best.device_path):
                best = candidate
    return best


def partitions_of(disk: DeviceNode, nodes: Iterable[DeviceNode]) -> List[DeviceNode]:
    nodes = list(nodes)
    return [n for n in nodes if n.is_partition and parent_disk(n, nodes) == disk]
