"""
Health Scanner - SMART status of whole disks via smartctl.

Read-only: only `smartctl -H` (overall assessment) and `smartctl -A`
(attributes) are run. Disks without SMART support (most SD cards and many
USB bridges) report status "N/A" instead of failing the scan.

Parsers are pure functions of smartctl's text output and understand both
the ATA attribute table and the NVMe health log.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import re

from .base import BaseScanner
from ..schema import DeviceKind, DeviceNode


STATUS_PASS = "PASS"
STATUS_FAIL = "FAIL"
STATUS_UNKNOWN = "UNKNOWN"
STATUS_NA = "N/A"

HOT_CELSIUS = 60
WORN_PERCENT = 50

# smartctl exit status bits 0-1: bad command line / device could not be opened
_SMARTCTL_FATAL_BITS = 0b11

_ATA_ROW = re.compile(
    r'^\s*(?P<id>\d+)\s+(?P<name>\S+)\s+0x[0-9a-fA-F]+\s+'
    r'(?P<value>\d+)\s+\d+\s+\S+\s+\S+\s+\S+\s+\S+\s+(?P<raw>.+?)\s*$'
)


@dataclass(frozen=True)
class DiskHealth:
    """SMART snapshot for one disk."""
    device: str
    status: str = STATUS_NA
    temperature: Optional[int] = None       # Celsius
    power_on_hours: Optional[int] = None
    wear_level: Optional[int] = None        # Life remaining, percent (100 = new)

    @property
    def warnings(self) -> List[str]:
        found = []
        if self.status == STATUS_FAIL:
            found.append("SMART failure detected - backup immediately!")
        if self.temperature is not None and self.temperature > HOT_CELSIUS:
            found.append(f"High temperature ({self.temperature}°C) - check cooling")
        if self.wear_level is not None and self.wear_level < WORN_PERCENT:
            found.append(f"High wear ({100 - self.wear_level}%) - consider replacement")
        return found


# ─────────────────────────────────────────────────────────────
# Parsers
# ─────────────────────────────────────────────────────────────

def _leading_int(text: str) -> Optional[int]:
    m = re.match(r'\s*([\d,]+)', text)
    if not m:
        return None
    digits = m.group(1).replace(',', '')
    return int(digits) if digits else None


def parse_smart_health(text: str) -> str:
    """Overall assessment from `smartctl -H` (ATA/NVMe "PASSED", SCSI "OK")."""
    if re.search(r'SMART support is:\s*Unavailable', text):
        return STATUS_NA
    m = re.search(r'(?:self-assessment test result|SMART Health Status):\s*(\S+)', text)
    if m:
        verdict = m.group(1).upper()
        if verdict in ("PASSED", "OK"):
            return STATUS_PASS
        if verdict.startswith("FAIL"):
            return STATUS_FAIL
    return STATUS_UNKNOWN


def parse_ata_attributes(text: str) -> Dict[str, Dict[str, object]]:
    """ATA attribute table -> {name: {"id", "value", "raw"}}."""
    attrs: Dict[str, Dict[str, object]] = {}
    for line in text.splitlines():
        m = _ATA_ROW.match(line)
        if m:
            attrs[m.group('name')] = {
                "id": int(m.group('id')),
                "value": int(m.group('value')),
                "raw": m.group('raw'),
            }
    return attrs


def parse_nvme_log(text: str) -> Dict[str, str]:
    """NVMe "SMART/Health Information" section -> {key: value}."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        m = re.match(r'^([A-Z][A-Za-z0-9 /_-]+?):\s+(.+?)\s*$', line)
        if m:
            values[m.group(1)] = m.group(2)
    return values


def parse_temperature(text: str) -> Optional[int]:
    attrs = parse_ata_attributes(text)
    for name in ("Temperature_Celsius", "Airflow_Temperature_Cel", "Temperature_Internal"):
        if name in attrs:
            return _leading_int(str(attrs[name]["raw"]))
    nvme = parse_nvme_log(text)
    if "Temperature" in nvme:
        return _leading_int(nvme["Temperature"])
    return None


def parse_power_on_hours(text: str) -> Optional[int]:
    attrs = parse_ata_attributes(text)
    if "Power_On_Hours" in attrs:
        # Raw value may carry minutes, e.g. "1234h+05m+10.000s"
        return _leading_int(str(attrs["Power_On_Hours"]["raw"]))
    nvme = parse_nvme_log(text)
    if "Power On Hours" in nvme:
        return _leading_int(nvme["Power On Hours"])
    return None


def parse_wear_level(text: str) -> Optional[int]:
    """Life remaining in percent, from the normalized ATA value or NVMe Percentage Used."""
    attrs = parse_ata_attributes(text)
    for name in ("Wear_Leveling_Count", "Media_Wearout_Indicator", "Percent_Lifetime_Remain"):
        if name in attrs:
            return int(attrs[name]["value"])
    nvme = parse_nvme_log(text)
    if "Percentage Used" in nvme:
        used = _leading_int(nvme["Percentage Used"])
        if used is not None:
            return max(100 - used, 0)
    return None


def format_hours(hours: Optional[int]) -> str:
    """1234 -> "51d", 9000 -> "1y 10d"."""
    if not hours:
        return "N/A"
    days = hours // 24
    years = days // 365
    if years > 0:
        return f"{years}y {days % 365}d"
    if days > 0:
        return f"{days}d"
    return f"{hours}h"


# ─────────────────────────────────────────────────────────────
# Scanner
# ─────────────────────────────────────────────────────────────

class HealthScanner(BaseScanner):
    """
    SMART health for disks.

    Usage:
        scanner = HealthScanner()
        if scanner.available():
            for health in scanner.scan(nodes):
                print(health.device, health.status)
    """

    def available(self) -> bool:
        return self.command_exists("smartctl")

    def _smartctl(self, flag: str, device: str) -> Optional[str]:
        code, stdout, stderr = self.run_command(["smartctl", flag, device])
        if code < 0 or code & _SMARTCTL_FATAL_BITS or not stdout.strip():
            self.logger.debug(f"smartctl {flag} {device} unavailable ({code}): {stderr.strip()}",
                              extra={"device": device})
            return None
        return stdout

    def check(self, device: str) -> DiskHealth:
        """SMART snapshot for one disk device path."""
        health_out = self._smartctl("-H", device)
        if health_out is None:
            return DiskHealth(device=device)
        attrs_out = self._smartctl("-A", device) or ""
        health = DiskHealth(
            device=device,
            status=parse_smart_health(health_out),
            temperature=parse_temperature(attrs_out),
            power_on_hours=parse_power_on_hours(attrs_out),
            wear_level=parse_wear_level(attrs_out),
        )
        for warning in health.warnings:
            self.logger.info(f"{device}: {warning}", extra={"device": device})
        return health

    def scan(self, nodes: Iterable[DeviceNode]) -> List[DiskHealth]:
        """Check every whole disk among the scanned nodes."""
        return [self.check(n.device_path) for n in nodes if n.kind == DeviceKind.DISK]
