import pytest

from diskmgt_core.registry.records import DriveRecord
from diskmgt_core.registry.search import search_records

RECORDS = [
    DriveRecord(uuid="u-1", label="LXD-default", type="USB/SATA Drive", purpose="LXD Storage (3 containers)"),
    DriveRecord(uuid="u-2", label="Root-System", type="SD Card", purpose="System Root", device="/dev/mmcblk0p2"),
    DriveRecord(uuid="u-3", label="Debian-GNU/Linux-12", type="NVMe SSD", purpose="Operating System"),
    DriveRecord(uuid="u-4", label="Pictures", type="SD Card", purpose="Media Storage", device="/dev/sdb1"),
]


def _labels(query):
    return [r.label for r in search_records(RECORDS, query)]


def test_substring_is_case_insensitive():
    assert _labels("pict") == ["Pictures"]
    assert _labels("SD CARD") == ["Root-System", "Pictures"]


def test_matches_device_path():
    assert _labels("sdb1") == ["Pictures"]


@pytest.mark.parametrize("query,expected", [
    ("lxc", ["LXD-default"]),
    ("container", ["LXD-default"]),
    ("os", ["Debian-GNU/Linux-12"]),
    ("root", ["Root-System"]),
])
def test_aliases(query, expected):
    assert _labels(query) == expected


def test_empty_query_matches_nothing():
    assert _labels("") == []
    assert _labels("   ") == []


def test_no_match():
    assert _labels("tape") == []
