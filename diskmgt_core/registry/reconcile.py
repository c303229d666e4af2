"""
Reconciler - Match live DeviceNodes to DriveRecords by filesystem UUID.

Output follows registry insertion order, not scan order, so the registry
view stays stable across plug/unplug cycles. Connected records are touched
(last_seen = now) as a side effect.

Two live nodes reporting the same UUID (e.g. a freshly cloned drive) are
resolved deterministically: the first node in scan order wins and the rest
are reported as duplicates.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from .records import DriveRecord
from .store import RegistryStore
from ..discovery.schema import DeviceNode

logger = logging.getLogger('diskmgt.reconcile')


@dataclass(frozen=True)
class ReconciledDrive:
    """A registry record with its live status."""
    record: DriveRecord
    connected: bool
    node: Optional[DeviceNode] = None

    @property
    def mount_path(self) -> Optional[str]:
        return self.node.mount_path if self.node else None


@dataclass
class ReconcileResult:
    drives: List[ReconciledDrive] = field(default_factory=list)
    # Partitions with a UUID not yet in the registry
    candidates: List[DeviceNode] = field(default_factory=list)
    # Partitions without a filesystem UUID (placeholder keys only)
    unidentified: List[DeviceNode] = field(default_factory=list)
    # Live nodes that lost the UUID tie-break to an earlier node
    duplicates: List[DeviceNode] = field(default_factory=list)

    @property
    def connected(self) -> List[ReconciledDrive]:
        return [d for d in self.drives if d.connected]

    @property
    def offline(self) -> List[ReconciledDrive]:
        return [d for d in self.drives if not d.connected]


def index_live_nodes(live_nodes: Iterable[DeviceNode]) -> Tuple[Dict[str, DeviceNode], List[DeviceNode]]:
    """Map UUID -> node, first in scan order wins. Returns (index, duplicates)."""
    index: Dict[str, DeviceNode] = {}
    duplicates: List[DeviceNode] = []
    for node in live_nodes:
        if not node.has_stable_uuid:
            continue
        if node.fs_uuid in index:
            duplicates.append(node)
            logger.warning(
                f"{node.device_path} reports UUID {node.fs_uuid} already seen on "
                f"{index[node.fs_uuid].device_path}; keeping the first",
                extra={"uuid": node.fs_uuid, "device": node.device_path},
            )
            continue
        index[node.fs_uuid] = node
    return index, duplicates


def reconcile(
    live_nodes: Sequence[DeviceNode],
    records: Sequence[DriveRecord],
    touch: Optional[Callable[[str], Optional[str]]] = None,
) -> ReconcileResult:
    """
    Merge a live scan with registry records.

    Args:
        live_nodes: Output of DeviceScanner.scan()
        records: Registry records in insertion order
        touch: Called with the uuid of every connected record; a returned
            timestamp replaces last_seen on the returned record
    """
    index, duplicates = index_live_nodes(live_nodes)
    result = ReconcileResult(duplicates=duplicates)

    known = set()
    for record in records:
        known.add(record.uuid)
        node = index.get(record.uuid)
        if node is not None and touch is not None:
            stamped = touch(record.uuid)
            if stamped:
                record = record.model_copy(update={"last_seen": stamped})
        result.drives.append(ReconciledDrive(record=record, connected=node is not None, node=node))

    # Only partitions are registrable: a whole disk and its single partition
    # would otherwise show up as two drives.
    for node in live_nodes:
        if not node.is_partition:
            continue
        if not node.has_stable_uuid:
            result.unidentified.append(node)
        elif node.fs_uuid not in known and index.get(node.fs_uuid) is node:
            result.candidates.append(node)

    logger.info(
        f"Reconciled {len(result.drives)} drives: {len(result.connected)} connected, "
        f"{len(result.candidates)} unregistered",
        extra={"count": len(result.drives)},
    )
    return result


class Reconciler:
    """
    Reconciles scans against a RegistryStore.

    Usage:
        reconciler = Reconciler(store)
        result = reconciler.reconcile(scanner.scan())
        for drive in result.drives:
            print(drive.record.label, drive.connected)
    """

    def __init__(self, store: RegistryStore):
        self.store = store

    def reconcile(self, live_nodes: Sequence[DeviceNode]) -> ReconcileResult:
        return reconcile(live_nodes, self.store.all(), touch=self.store.touch)

    def unregistered(self, live_nodes: Sequence[DeviceNode]) -> List[DeviceNode]:
        """Registration candidates without touching any record."""
        return reconcile(live_nodes, self.store.all()).candidates
