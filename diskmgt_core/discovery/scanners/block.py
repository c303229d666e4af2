"""
Block Device Scanner - Flatten the kernel's disk -> partition tree.

One external query per scan (lsblk JSON). The result is a flat list of
DeviceNodes, disks followed by their partitions, with loop/rom/lvm/crypt
devices dropped. A failed or unparseable query never raises: the scan
returns an empty list and records a warning so the registry stays usable.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import json
import logging

from .base import BaseScanner
from ..schema import DeviceKind, DeviceNode
from ...errors import ScanFailure


LSBLK_COLUMNS = "NAME,SIZE,TYPE,MOUNTPOINT,FSTYPE,MODEL,UUID"

# lsblk TYPE -> tracked kind
_TRACKED_TYPES = {
    'disk': DeviceKind.DISK,
    'part': DeviceKind.PARTITION,
}


class DeviceSource(ABC):
    """Capability interface for reading block-device topology."""

    @abstractmethod
    def fetch(self) -> Dict[str, Any]:
        """
        Return an lsblk-shaped document: {"blockdevices": [...]}.

        Raises:
            ScanFailure: the query failed or returned unparseable data.
        """
        pass


class LsblkDeviceSource(BaseScanner, DeviceSource):
    """Real source: shells out to lsblk with byte sizes and JSON output."""

    def fetch(self) -> Dict[str, Any]:
        code, stdout, stderr = self.run_command([
            "lsblk", "-J", "-b", "-o", LSBLK_COLUMNS
        ])
        if code != 0:
            raise ScanFailure(f"lsblk failed ({code}): {stderr.strip() or 'no output'}")
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ScanFailure(f"lsblk returned unparseable JSON: {e}") from e


class FixtureDeviceSource(DeviceSource):
    """Fake source returning fixed data, or failing on demand."""

    def __init__(self, document: Optional[Dict[str, Any]] = None, error: Optional[str] = None):
        self.document = document if document is not None else {"blockdevices": []}
        self.error = error

    def fetch(self) -> Dict[str, Any]:
        if self.error:
            raise ScanFailure(self.error)
        return self.document


class DeviceScanner:
    """
    Device Scanner.

    Usage:
        scanner = DeviceScanner(LsblkDeviceSource())
        nodes = scanner.scan()
        if scanner.warnings:
            ...  # show as non-fatal warning
    """

    def __init__(self, source: DeviceSource):
        self.source = source
        self.warnings: List[str] = []
        self.logger = logging.getLogger('diskmgt.scanner.DeviceScanner')

    def scan(self) -> List[DeviceNode]:
        """Scan block devices. Returns an empty list on failure."""
        self.warnings = []
        try:
            document = self.source.fetch()
            nodes = flatten_blockdevices(document)
        except ScanFailure as e:
            self.warnings.append(str(e))
            # Callers surface self.warnings; the log line stays below WARNING
            self.logger.info(f"Device scan failed: {e}")
            return []
        self.logger.info(f"Found {len(nodes)} block devices", extra={"count": len(nodes)})
        return nodes


def flatten_blockdevices(document: Any) -> List[DeviceNode]:
    """
    Flatten an lsblk JSON tree depth-first into DeviceNodes.

    Raises:
        ScanFailure: the document does not have the expected shape.
    """
    if not isinstance(document, dict) or not isinstance(document.get('blockdevices'), list):
        raise ScanFailure("lsblk document has no 'blockdevices' list")

    nodes: List[DeviceNode] = []

    def visit(device: Any) -> None:
        if not isinstance(device, dict):
            raise ScanFailure(f"malformed block device entry: {device!r}")
        kind = _TRACKED_TYPES.get(device.get('type'))
        if kind is not None:
            nodes.append(_node_from_entry(device, kind))
        # Partitions of untracked parents (e.g. loop devices) are still visited
        for child in device.get('children') or []:
            visit(child)

    for device in document['blockdevices']:
        visit(device)
    return nodes


def _node_from_entry(device: Dict[str, Any], kind: DeviceKind) -> DeviceNode:
    name = device.get('name')
    if not name:
        raise ScanFailure(f"block device entry without a name: {device!r}")
    try:
        size_bytes = int(device.get('size') or 0)
    except (TypeError, ValueError) as e:
        raise ScanFailure(f"unparseable size for {name}: {device.get('size')!r}") from e

    return DeviceNode(
        name=name,
        size_bytes=max(size_bytes, 0),
        kind=kind,
        mount_path=_mount_path(device),
        fs_type=_clean(device.get('fstype')),
        model=_clean(device.get('model')),
        fs_uuid=_clean(device.get('uuid')),
    )


def _mount_path(device: Dict[str, Any]) -> Optional[str]:
    # util-linux >= 2.37 may report "mountpoints": [...] instead of "mountpoint"
    mount = device.get('mountpoint')
    if not mount:
        mounts = [m for m in (device.get('mountpoints') or []) if m]
        mount = mounts[0] if mounts else None
    return _clean(mount)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None
