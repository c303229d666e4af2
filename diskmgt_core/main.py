#!/usr/bin/env python3
import argparse
import json
import sys

from .config.settings import load_settings
from .discovery.probes import ContentProber
from .discovery.scanners.block import DeviceScanner, LsblkDeviceSource
from .discovery.scanners.health import HealthScanner, format_hours
from .discovery.schema import DeviceKind, drive_type_for, parent_disk, partitions_of
from .labeling.autolabel import auto_register_all
from .obs.logging import get_logger
from .registry.backend import JsonFileBackend
from .registry.reconcile import Reconciler
from .registry.records import DriveRecord
from .registry.search import search_records
from .registry.store import RegistryStore
from .utils.paths import registry_path
from . import __version__

DRIVE_TYPES = ['USB Drive', 'SD Card', 'NVMe SSD', 'SATA Drive', 'External HDD', 'Other']


# ─────────────────────────────────────────────────────────────
# Wiring (replaced in tests)
# ─────────────────────────────────────────────────────────────

def _open_store(settings):
    store = RegistryStore(
        JsonFileBackend(registry_path(settings['registry_file'])),
        audit=bool(settings.get('audit')),
    )
    store.initialize()
    return store


def _make_scanner(settings):
    return DeviceScanner(LsblkDeviceSource(timeout=settings.get('command_timeout')))


def _make_prober(settings):
    return ContentProber(timeout=settings.get('command_timeout'))


def _make_health_scanner(settings):
    return HealthScanner(timeout=settings.get('command_timeout'))


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _scan(args):
    scanner = _make_scanner(args.settings)
    nodes = scanner.scan()
    for warning in scanner.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return nodes


def _confirm(message, assume_yes=False):
    if assume_yes:
        return True
    try:
        answer = input(f"{message} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def _print_record(record, out=None):
    out = out or sys.stdout
    print(f"Label: {record.label}", file=out)
    print(f"UUID: {record.uuid}", file=out)
    print(f"Size: {record.size}", file=out)
    print(f"Type: {record.type}", file=out)
    print(f"Purpose: {record.purpose or 'Not specified'}", file=out)
    for key, value in record.extra_fields.items():
        print(f"{key.replace('_', ' ').title()}: {value}", file=out)
    print(f"First Seen: {record.first_seen or '-'}", file=out)
    print(f"Last Seen: {record.last_seen or '-'}", file=out)
    print('─' * 50, file=out)


def _node_line(node, indent=''):
    mount = node.mount_path or 'not mounted'
    return f"{indent}{node.device_path:<16} {node.size:>8}  {node.fs_type or '-':<8} {mount:<24} {node.key}"


# ─────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────

def cmd_info(args):
    print(f"diskmgt {__version__} - drive registry for removable storage")
    print(f"Registry: {registry_path(args.settings['registry_file'])}")
    print(f"Registered drives: {_open_store(args.settings).count()}")
    return 0


def cmd_scan(args):
    nodes = _scan(args)
    if args.json:
        print(json.dumps([n.to_dict() for n in nodes], indent=2))
        return 0
    if not nodes:
        print("No drives detected.")
        return 0
    for disk in (n for n in nodes if n.kind == DeviceKind.DISK):
        print(f"{disk.device_path} ({disk.size}) - {disk.model or 'Unknown Model'} [{drive_type_for(disk.name)}]")
        for part in partitions_of(disk, nodes):
            print(_node_line(part, indent='  '))
    return 0


def cmd_list(args):
    store = _open_store(args.settings)
    result = Reconciler(store).reconcile(_scan(args))
    if args.json:
        print(json.dumps([
            {
                **d.record.to_dict(),
                "connected": d.connected,
                "mount_path": d.mount_path,
            }
            for d in result.drives
        ], indent=2))
        return 0
    if not result.drives:
        print("No drives registered yet.")
    for i, drive in enumerate(result.drives, 1):
        status = 'CONNECTED' if drive.connected else 'offline'
        mount = drive.mount_path or 'N/A'
        print(f"{i:>3}  {drive.record.label or 'Unlabeled':<20} {status:<10} {drive.record.size:>8}  {drive.record.type:<15} {mount}")
    for node in result.duplicates:
        print(f"warning: {node.device_path} duplicates UUID {node.fs_uuid}", file=sys.stderr)
    if result.candidates:
        print(f"\n{len(result.candidates)} unregistered partition(s); run 'diskmgt candidates'.")
    return 0


def cmd_candidates(args):
    store = _open_store(args.settings)
    result = Reconciler(store).reconcile(_scan(args))
    if not result.candidates:
        print("All detected drives are already registered.")
    for node in result.candidates:
        print(_node_line(node))
    for node in result.unidentified:
        print(f"{_node_line(node)}  (no filesystem UUID, cannot register)")
    return 0


def cmd_register(args):
    store = _open_store(args.settings)
    candidates = Reconciler(store).unregistered(_scan(args))
    node = next((n for n in candidates if n.fs_uuid == args.uuid), None)
    if node is None:
        print(f"No unregistered partition with UUID {args.uuid} is connected.", file=sys.stderr)
        return 1
    extra = {}
    for item in args.set or []:
        key, sep, value = item.partition('=')
        if not sep or not key or key in DriveRecord.model_fields:
            print(f"Invalid --set value '{item}', expected key=value with a custom key.", file=sys.stderr)
            return 2
        extra[key] = value
    record = DriveRecord(
        uuid=node.fs_uuid,
        label=args.label,
        size=node.size,
        type=args.type or drive_type_for(node.name),
        purpose=args.purpose or '',
        device=node.device_path,
        **extra,
    )
    if not store.add(record):
        print("Failed to register drive.", file=sys.stderr)
        return 1
    print(f'Drive "{args.label}" registered successfully!')
    return 0


def cmd_auto_register(args):
    store = _open_store(args.settings)
    nodes = _scan(args)
    candidates = Reconciler(store).unregistered(nodes)
    if not candidates:
        print("All detected drives are already registered.")
        return 0
    prober = _make_prober(args.settings)
    registrations = auto_register_all(candidates, lambda node: prober.collect(node, nodes))
    if not registrations:
        print("No drives were registered.", file=sys.stderr)
        return 1
    for r in registrations:
        print(f"{r.device:<16} {r.label:<20} {r.type:<15} {r.purpose}")
    if args.dry_run:
        return 0
    if not _confirm(f"Register all {len(registrations)} drive(s) with these settings?", args.yes):
        print("Auto-registration cancelled.")
        return 0
    added = sum(1 for r in registrations if store.add(r))
    print(f"Successfully registered {added} of {len(registrations)} drive(s)!")
    return 0 if added == len(registrations) else 1


def cmd_edit(args):
    store = _open_store(args.settings)
    if args.field == 'type' and args.value not in DRIVE_TYPES:
        print(f"note: '{args.value}' is not one of: {', '.join(DRIVE_TYPES)}", file=sys.stderr)
    if not store.update_field(args.uuid, args.field, args.value):
        print("Failed to update drive.", file=sys.stderr)
        return 1
    print(f"{args.field} updated successfully!")
    return 0


def cmd_remove(args):
    store = _open_store(args.settings)
    record = store.get(args.uuid)
    if record is None:
        print(f"No registered drive with UUID {args.uuid}.")
        return 0
    _print_record(record)
    if not _confirm(f'Are you sure you want to remove "{record.label}" from tracking?', args.yes):
        return 0
    store.remove(args.uuid)
    print(f'Drive "{record.label}" removed from tracking.')
    return 0


def cmd_search(args):
    results = search_records(_open_store(args.settings).all(), args.query)
    if not results:
        print("No drives found matching your search.")
        return 0
    print(f"Found {len(results)} drive(s):\n")
    for record in results:
        _print_record(record)
    return 0


def cmd_export(args):
    records = _open_store(args.settings).all()
    if args.format == 'json':
        print(json.dumps({"drives": [r.to_dict() for r in records]}, indent=2))
        return 0
    if not records:
        print("No drives to export.")
        return 0
    for record in records:
        _print_record(record)
    print(f"Exported {len(records)} drive(s).")
    return 0


def cmd_health(args):
    scanner = _make_health_scanner(args.settings)
    if not scanner.available():
        print("smartctl not installed. Install with: sudo apt install smartmontools", file=sys.stderr)
        return 1
    nodes = _scan(args)
    disks = {n.device_path: n for n in nodes if n.kind == DeviceKind.DISK}
    if not disks:
        print("No disk drives detected.")
        return 0
    results = scanner.scan(disks.values())
    print(f"{'Device':<16} {'Model':<20} {'Size':>8}  {'Health':<8} {'Temp':>5}  {'Wear':>5}  Hours")
    for h in results:
        disk = disks[h.device]
        temp = f"{h.temperature}C" if h.temperature is not None else 'N/A'
        wear = f"{h.wear_level}%" if h.wear_level is not None else 'N/A'
        print(f"{h.device:<16} {(disk.model or 'Unknown')[:20]:<20} {disk.size:>8}  {h.status:<8} {temp:>5}  {wear:>5}  {format_hours(h.power_on_hours)}")
    warnings = [(h.device, w) for h in results for w in h.warnings]
    if not warnings:
        print("\nAll drives healthy!")
        return 0
    print("\nWarnings:")
    for device, warning in warnings:
        print(f"  {device}: {warning}")
    return 1 if any(h.status == 'FAIL' for h in results) else 0


def cmd_inspect(args):
    nodes = _scan(args)
    wanted = args.device if args.device.startswith('/dev/') else f"/dev/{args.device}"
    node = next((n for n in nodes if n.device_path == wanted), None)
    disk = parent_disk(node, nodes) if node else None
    if disk is None:
        print(f"No detected disk matches {args.device}.", file=sys.stderr)
        return 1
    report = _make_prober(args.settings).inspect_disk(disk, nodes)
    print(f"{disk.device_path} ({disk.size}) - {disk.model or 'Unknown Model'} [{drive_type_for(disk.name)}]")
    print(f"Partition Table: {report.partition_table or 'unknown'}")
    print(f"Bootable: {'yes' if report.bootable else 'no'}")
    for number, flags in report.boot_partitions:
        print(f"  Boot partition {number}: {', '.join(flags)}")
    print("Partitions:")
    for part in report.partitions:
        print(_node_line(part, indent='  '))
    if report.os_installs:
        print("Operating Systems:")
        for device, label in report.os_installs:
            print(f"  {device}: {label}")
    if report.container.is_detected:
        pool = report.container.pool_name or 'unknown pool'
        print(f"Container Storage: {report.container.engine} ({pool}, {report.container.container_count} containers)")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog='diskmgt', description='Drive registry for removable storage')
    parser.add_argument('--config', help='Path to settings.yml')
    sub = parser.add_subparsers(required=True)

    p_info = sub.add_parser('info', help='Show tool and registry info')
    p_info.set_defaults(func=cmd_info)

    p_scan = sub.add_parser('scan', help='Show currently detected disks and partitions')
    p_scan.add_argument('--json', action='store_true', help='Print JSON instead of a tree')
    p_scan.set_defaults(func=cmd_scan)

    p_list = sub.add_parser('list', help='Show registered drives (connected + offline)')
    p_list.add_argument('--json', action='store_true', help='Print JSON instead of a table')
    p_list.set_defaults(func=cmd_list)

    p_cand = sub.add_parser('candidates', help='Show connected partitions that are not registered')
    p_cand.set_defaults(func=cmd_candidates)

    p_reg = sub.add_parser('register', help='Register a connected partition by filesystem UUID')
    p_reg.add_argument('uuid', help='Filesystem UUID (see "candidates")')
    p_reg.add_argument('--label', required=True, help='Label/nickname for this drive')
    p_reg.add_argument('--type', help=f"Drive type, e.g. {', '.join(DRIVE_TYPES)}")
    p_reg.add_argument('--purpose', help='Purpose, e.g. Backup, Projects, Media')
    p_reg.add_argument('--set', action='append', metavar='KEY=VALUE', help='Extra field to store (repeatable)')
    p_reg.set_defaults(func=cmd_register)

    p_auto = sub.add_parser('auto-register', help='Register all unregistered partitions with inferred labels')
    p_auto.add_argument('--yes', action='store_true', help='Do not ask for confirmation')
    p_auto.add_argument('--dry-run', action='store_true', help='Only show the inferred labels')
    p_auto.set_defaults(func=cmd_auto_register)

    p_edit = sub.add_parser('edit', help='Edit a field of a registered drive')
    p_edit.add_argument('uuid')
    p_edit.add_argument('field', help='label, type, purpose or any extra field')
    p_edit.add_argument('value')
    p_edit.set_defaults(func=cmd_edit)

    p_rm = sub.add_parser('remove', help='Remove a drive from tracking')
    p_rm.add_argument('uuid')
    p_rm.add_argument('--yes', action='store_true', help='Do not ask for confirmation')
    p_rm.set_defaults(func=cmd_remove)

    p_search = sub.add_parser('search', help='Search drives by label, type, purpose or device')
    p_search.add_argument('query')
    p_search.set_defaults(func=cmd_search)

    p_export = sub.add_parser('export', help='Export the drive list')
    p_export.add_argument('--format', choices=['text', 'json'], default='text')
    p_export.set_defaults(func=cmd_export)

    p_health = sub.add_parser('health', help='SMART health of detected disks (smartctl)')
    p_health.set_defaults(func=cmd_health)

    p_inspect = sub.add_parser('inspect', help='Partition table, boot partitions and OS installs of a disk')
    p_inspect.add_argument('device', help='Disk or partition, e.g. sdb or /dev/sdb1')
    p_inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.settings = load_settings(args.config)
    get_logger('diskmgt', args.settings.get('log_level'))
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
