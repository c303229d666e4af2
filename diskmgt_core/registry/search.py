from __future__ import annotations
from typing import Iterable, List

from .records import DriveRecord

# query -> extra text that also counts as a match
SEARCH_ALIASES = {
    'lxc': ('lxd',),
    'lxd': ('lxc',),
    'container': ('lxd',),
    'os': ('operating system',),
    'system': ('operating system',),
    'root': ('root-system',),
}


def search_text(record: DriveRecord) -> str:
    return " ".join(
        str(part) for part in (record.label, record.type, record.purpose, record.device or "")
    ).lower()


def search_records(records: Iterable[DriveRecord], query: str) -> List[DriveRecord]:
    """Case-insensitive substring search over label, type, purpose and device."""
    q = (query or "").strip().lower()
    if not q:
        return []
    needles = (q,) + SEARCH_ALIASES.get(q, ())
    return [r for r in records if any(n in search_text(r) for n in needles)]
