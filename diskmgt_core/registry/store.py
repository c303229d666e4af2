"""
Registry Store - Durable CRUD over DriveRecords keyed by UUID.

Every mutating call re-reads the full document from the backend, mutates it
in memory and writes it back whole. There is no cross-process lock: two
concurrent invocations can lose an update (last writer wins). The tool is
single-user and runs one process at a time.

Negative outcomes are return values, never exceptions:
- unknown uuid        -> None / False
- duplicate add       -> False
- corrupt document    -> empty collection on read, False on write
- invalid field value -> False, nothing written

A document is corrupt if it cannot be parsed, has the wrong shape, or holds
a drive that does not validate as a DriveRecord (e.g. "label": null).
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
import logging

from pydantic import ValidationError

from .backend import StoreBackend
from .records import DriveRecord
from ..discovery.schema import is_placeholder_key
from ..errors import StoreCorruption
from ..obs.audit import write_audit
from ..obs.logging import drive_logger

logger = logging.getLogger('diskmgt.registry')

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RegistryStore:
    """
    Registry of known drives.

    Usage:
        store = RegistryStore(JsonFileBackend(registry_path()))
        store.initialize()
        store.add(DriveRecord(uuid="abc-123", label="Backups"))
        store.touch("abc-123")
        for record in store.all():
            print(record.label)
    """

    def __init__(self, backend: StoreBackend, clock: Optional[Clock] = None, audit: bool = False):
        self.backend = backend
        self.clock = clock or _utc_now
        self.audit = audit

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Create the backing location and an empty collection if absent."""
        self.backend.open()

    def close(self) -> None:
        self.backend.close()

    def __enter__(self) -> "RegistryStore":
        self.initialize()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────

    def all(self) -> List[DriveRecord]:
        """All records in insertion order. Corrupt data reads as empty."""
        doc = self._read_or_none()
        if doc is None:
            return []
        return [DriveRecord.from_dict(d) for d in doc["drives"]]

    def get(self, uuid: str) -> Optional[DriveRecord]:
        for record in self.all():
            if record.uuid == uuid:
                return record
        return None

    def count(self) -> int:
        return len(self.all())

    # ─────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────

    def add(self, record: Union[DriveRecord, Mapping[str, Any]]) -> bool:
        """
        Register a drive. Stamps first_seen = last_seen = now.

        Returns False if the uuid is already registered (no overwrite), is
        a NO-UUID placeholder, or the mapping does not validate.
        """
        if not isinstance(record, DriveRecord):
            try:
                record = DriveRecord.from_dict(dict(record))
            except ValidationError as e:
                logger.warning(f"Refusing to register invalid drive data: {e}")
                return False
        log = drive_logger(logger, record.uuid, record.device)
        if is_placeholder_key(record.uuid):
            log.warning(f"Refusing to register placeholder key {record.uuid}")
            return False

        doc = self._read_or_none()
        if doc is None:
            return False
        if any(d.get("uuid") == record.uuid for d in doc["drives"]):
            log.info(f"Drive {record.uuid} already registered")
            return False

        timestamp = self._timestamp()
        data = record.to_dict()
        data["first_seen"] = timestamp
        data["last_seen"] = timestamp
        doc["drives"].append(data)
        self.backend.write(doc)

        log.info(f"Registered drive {record.uuid} as '{record.label}'")
        self._audit("add", record.uuid, f"Registered '{record.label}'", label=record.label, device=record.device)
        return True

    def touch(self, uuid: str) -> Optional[str]:
        """
        Set last_seen = now (never earlier than the stored value).

        Returns the stored last_seen, or None for unknown uuids and
        unreadable registries.
        """
        doc = self._read_or_none()
        if doc is None:
            return None
        drive = self._find(doc, uuid)
        if drive is None:
            return None
        drive["last_seen"] = self._advance(drive.get("last_seen"))
        self.backend.write(doc)
        return drive["last_seen"]

    def update_field(self, uuid: str, field: str, value: Any) -> bool:
        """
        Set one field on a record.

        False if the uuid is unknown, the field is uuid, or the value does
        not fit the field (e.g. a number for label).
        """
        log = drive_logger(logger, uuid)
        if field == "uuid":
            log.warning("The uuid field cannot be edited")
            return False
        doc = self._read_or_none()
        if doc is None:
            return False
        drive = self._find(doc, uuid)
        if drive is None:
            return False
        before = drive.get(field)
        drive[field] = value
        try:
            DriveRecord.model_validate(drive)
        except ValidationError as e:
            log.warning(f"Rejected value for {field}: {e}", extra={"field": field})
            return False
        self.backend.write(doc)

        log.info(f"Updated {field} of drive {uuid}", extra={"field": field})
        self._audit("update", uuid, f"Set {field}", field=field, before=before, after=value)
        return True

    def remove(self, uuid: str) -> bool:
        """Forget a drive. Removing an unknown uuid is a no-op; returns whether a record was removed."""
        doc = self._read_or_none()
        if doc is None:
            return False
        removed = self._find(doc, uuid)
        if removed is None:
            return False
        doc["drives"] = [d for d in doc["drives"] if d.get("uuid") != uuid]
        self.backend.write(doc)

        drive_logger(logger, uuid, removed.get("device")).info(f"Removed drive {uuid}")
        self._audit("remove", uuid, "Removed from tracking", before=removed)
        return True

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    def _read_or_none(self) -> Optional[Dict[str, Any]]:
        """The backing document if every drive in it validates, else None."""
        try:
            doc = self.backend.read()
            for drive in doc["drives"]:
                DriveRecord.model_validate(drive)
        except StoreCorruption as e:
            logger.error(f"Registry is unreadable, treating as empty: {e}")
            return None
        except ValidationError as e:
            logger.error(f"Registry holds an invalid drive record, treating as empty: {e}")
            return None
        return doc

    @staticmethod
    def _find(doc: Dict[str, Any], uuid: str) -> Optional[Dict[str, Any]]:
        for drive in doc["drives"]:
            if drive.get("uuid") == uuid:
                return drive
        return None

    def _timestamp(self) -> str:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.isoformat()

    def _advance(self, previous: Optional[str]) -> str:
        """Current timestamp, never earlier than previous."""
        current = self._timestamp()
        if not previous:
            return current
        try:
            prev_dt = datetime.fromisoformat(previous)
            if prev_dt.tzinfo is None:
                prev_dt = prev_dt.replace(tzinfo=timezone.utc)
        except ValueError:
            return current
        if prev_dt > datetime.fromisoformat(current):
            return previous
        return current

    def _audit(self, mode: str, uuid: str, summary: str, **extra: Any) -> None:
        if not self.audit:
            return
        try:
            write_audit(tool="registry", mode=mode, request_id=uuid, ok=True, summary=summary, **extra)
        except OSError as e:
            logger.warning(f"Audit write failed: {e}")
