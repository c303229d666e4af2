"""
Discovery Scanners - Read live state from the OS.

Each scanner builds on BaseScanner's command/file helpers.
"""

from .base import BaseScanner
from .block import DeviceScanner, DeviceSource, FixtureDeviceSource, LsblkDeviceSource
from .health import DiskHealth, HealthScanner

__all__ = [
    'BaseScanner',
    'DeviceScanner',
    'DeviceSource',
    'FixtureDeviceSource',
    'LsblkDeviceSource',
    'DiskHealth',
    'HealthScanner',
]
