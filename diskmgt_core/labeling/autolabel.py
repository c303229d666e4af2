"""
Auto-Labeler - Infer a label and purpose from content signals.

Both chains are ordered lists of (name, rule) pairs; the first rule that
returns a non-empty string wins. Rules are pure functions of a DeviceNode
and a ContentProbe, so the priority order can be tested rule by rule.

Label priority:
    container pool > OS install > boot flag > mount path > volume label
    > hardware model > "<name>-<size>"

Purpose priority:
    container storage > OS install > boot flag > mount keywords > swap
    > top-level directory keywords > "General Storage"
"""

from __future__ import annotations
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
import logging
import posixpath
import re

from ..discovery.probes import LABELED_FS_TYPES, ContentProbe
from ..discovery.schema import DeviceNode, drive_type_for
from ..registry.records import DriveRecord

logger = logging.getLogger('diskmgt.autolabel')

MAX_LABEL_LENGTH = 20
DEFAULT_PURPOSE = "General Storage"
IGNORED_MODELS = ("unknown model", "unknown")

Rule = Callable[[DeviceNode, ContentProbe], Optional[str]]


def _dashed(text: str, limit: int = MAX_LABEL_LENGTH) -> str:
    return re.sub(r'\s+', '-', text.strip())[:limit]


def _path_mount(node: DeviceNode) -> Optional[str]:
    # lsblk reports swap as "[SWAP]", which is not a path
    if node.mount_path and node.mount_path.startswith('/'):
        return node.mount_path
    return None


# ─────────────────────────────────────────────────────────────
# Label rules
# ─────────────────────────────────────────────────────────────

def label_from_container(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    c = probe.container
    if not c.is_detected:
        return None
    return f"{c.engine}-{c.pool_name}" if c.pool_name else f"{c.engine}-Storage"


def label_from_os(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    if not probe.os_label or 'Unknown' in probe.os_label:
        return None
    return _dashed(re.sub(r'\([^)]*\)', '', probe.os_label))


def label_from_boot(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    return "Boot-Drive" if probe.boot_flagged else None


def label_from_mount(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    mount = _path_mount(node)
    if not mount:
        return None
    if mount.rstrip('/') == '':
        return "Root-System"
    return re.sub(r'[^a-zA-Z0-9_-]', '-', posixpath.basename(mount.rstrip('/')))


def label_from_volume(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    if (node.fs_type or '').lower() not in LABELED_FS_TYPES or not probe.volume_label:
        return None
    return _dashed(probe.volume_label)


def label_from_model(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    model = node.model or probe.hardware_model
    if not model or model.strip().lower() in IGNORED_MODELS:
        return None
    return _dashed(model)


LABEL_RULES: List[Tuple[str, Rule]] = [
    ("container", label_from_container),
    ("os", label_from_os),
    ("boot", label_from_boot),
    ("mount", label_from_mount),
    ("volume", label_from_volume),
    ("model", label_from_model),
]


def fallback_label(node: DeviceNode) -> str:
    return f"{node.name}-{node.size.replace('.', '')}"


# ─────────────────────────────────────────────────────────────
# Purpose rules
# ─────────────────────────────────────────────────────────────

# Checked in order against the lowercased mount path
MOUNT_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("backup", "timeshift"), "Backup"),
    (("media", "videos", "music"), "Media Storage"),
    (("data", "storage"), "Data Storage"),
    (("project", "dev"), "Development"),
]

# Checked in order against lowercased top-level directory names
DIRECTORY_KEYWORDS: List[Tuple[str, str]] = [
    ("backup", "Backup Storage"),
    ("media", "Media Storage"),
    ("documents", "Document Storage"),
]


def purpose_from_container(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    c = probe.container
    if not c.is_detected:
        return None
    if c.container_count > 0:
        return f"{c.engine} Storage ({c.container_count} containers)"
    return f"{c.engine} Storage"


def purpose_from_os(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    return "Operating System" if probe.os_label else None


def purpose_from_boot(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    return "System Boot" if probe.boot_flagged else None


def purpose_from_mount(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    mount = _path_mount(node)
    if not mount:
        return None
    lowered = mount.lower()
    for keywords, purpose in MOUNT_KEYWORDS:
        if any(k in lowered for k in keywords):
            return purpose
    if mount == '/':
        return "System Root"
    return None


def purpose_from_swap(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    return "Swap Memory" if (node.fs_type or '').lower() == 'swap' else None


def purpose_from_directories(node: DeviceNode, probe: ContentProbe) -> Optional[str]:
    entries = [e.lower() for e in probe.top_level_entries]
    for keyword, purpose in DIRECTORY_KEYWORDS:
        if any(keyword in e for e in entries):
            return purpose
    return None


PURPOSE_RULES: List[Tuple[str, Rule]] = [
    ("container", purpose_from_container),
    ("os", purpose_from_os),
    ("boot", purpose_from_boot),
    ("mount", purpose_from_mount),
    ("swap", purpose_from_swap),
    ("directories", purpose_from_directories),
]


# ─────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────

def first_match(rules: Sequence[Tuple[str, Rule]], node: DeviceNode, probe: ContentProbe) -> Optional[Tuple[str, str]]:
    """Return (rule name, value) of the first rule yielding a non-empty string."""
    for name, rule in rules:
        value = rule(node, probe)
        if value:
            return name, value
    return None


def infer_label(node: DeviceNode, probe: Optional[ContentProbe] = None) -> str:
    match = first_match(LABEL_RULES, node, probe or ContentProbe())
    return match[1] if match else fallback_label(node)


def infer_purpose(node: DeviceNode, probe: Optional[ContentProbe] = None) -> str:
    match = first_match(PURPOSE_RULES, node, probe or ContentProbe())
    return match[1] if match else DEFAULT_PURPOSE


def build_registration(node: DeviceNode, probe: Optional[ContentProbe] = None) -> DriveRecord:
    """Registration data for a partition, ready for RegistryStore.add()."""
    probe = probe or ContentProbe()
    return DriveRecord(
        uuid=node.key,
        label=infer_label(node, probe),
        size=node.size,
        type=drive_type_for(node.name),
        purpose=infer_purpose(node, probe),
        device=node.device_path,
    )


def auto_register_all(
    candidates: Iterable[DeviceNode],
    probe_for: Callable[[DeviceNode], ContentProbe],
) -> List[DriveRecord]:
    """
    Build registrations for every candidate partition.

    A drive whose probe fails is logged and skipped; the rest still register.
    """
    registrations = []
    for node in candidates:
        try:
            registrations.append(build_registration(node, probe_for(node)))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to auto-register {node.name}: {e}", extra={"device": node.device_path})
    return registrations
