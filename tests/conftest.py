from datetime import datetime, timedelta, timezone

import pytest

from diskmgt_core.discovery.scanners.block import FixtureDeviceSource, DeviceScanner
from diskmgt_core.registry.backend import MemoryBackend
from diskmgt_core.registry.store import RegistryStore


# Trimmed `lsblk -J -b -o NAME,SIZE,TYPE,MOUNTPOINT,FSTYPE,MODEL,UUID` from a Pi
LSBLK_DOC = {
    "blockdevices": [
        {"name": "loop0", "size": 52428800, "type": "loop", "mountpoint": "/snap/core/1",
         "fstype": "squashfs", "model": None, "uuid": None},
        {"name": "sda", "size": 31914983424, "type": "disk", "mountpoint": None,
         "fstype": None, "model": "SanDisk Ultra   ", "uuid": None,
         "children": [
             {"name": "sda1", "size": 31913934848, "type": "part", "mountpoint": "/media/pi/backup",
              "fstype": "ext4", "model": None, "uuid": "abc-123"},
         ]},
        {"name": "mmcblk0", "size": 63864569856, "type": "disk", "mountpoint": None,
         "fstype": None, "model": None, "uuid": None,
         "children": [
             {"name": "mmcblk0p1", "size": 268435456, "type": "part", "mountpoint": "/boot/firmware",
              "fstype": "vfat", "model": None, "uuid": "0B22-1A44"},
             {"name": "mmcblk0p2", "size": 63591940096, "type": "part", "mountpoint": "/",
              "fstype": "ext4", "model": None, "uuid": "root-uuid-1"},
         ]},
        {"name": "sdb", "size": 8053063680, "type": "disk", "mountpoint": None,
         "fstype": None, "model": "Flash Disk", "uuid": None,
         "children": [
             {"name": "sdb1", "size": 8052014080, "type": "part", "mountpoint": None,
              "fstype": None, "model": None, "uuid": None},
         ]},
    ]
}


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def lsblk_doc():
    import copy
    return copy.deepcopy(LSBLK_DOC)


@pytest.fixture
def live_nodes(lsblk_doc):
    return DeviceScanner(FixtureDeviceSource(lsblk_doc)).scan()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def store(clock):
    s = RegistryStore(MemoryBackend(), clock=clock)
    s.initialize()
    return s
