"""
Discovery - Live block devices and their content.

This package provides:
- Device schema (what a scan returns)
- Scanners (how block devices are enumerated)
- Content probes (what is on a partition)
"""

from .schema import DeviceKind, DeviceNode, format_size, drive_type_for, parent_disk
from .scanners import DeviceScanner, DeviceSource, FixtureDeviceSource, LsblkDeviceSource
from .probes import ContainerStorage, ContentProbe, ContentProber, DiskReport

__all__ = [
    'DeviceKind',
    'DeviceNode',
    'format_size',
    'drive_type_for',
    'parent_disk',
    'DeviceScanner',
    'DeviceSource',
    'FixtureDeviceSource',
    'LsblkDeviceSource',
    'ContainerStorage',
    'ContentProbe',
    'ContentProber',
    'DiskReport',
]
