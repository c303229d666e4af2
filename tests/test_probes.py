"""
Tests for content probes (container storage, OS, boot, labels).
"""

import subprocess
from types import SimpleNamespace

import psutil
import pytest

from diskmgt_core.discovery.probes import (
    UNKNOWN_LINUX,
    ContentProber,
    count_csv_rows,
    parse_lxc_storage_csv,
    parse_os_release,
    parse_parted_flags,
    parse_partition_table,
)
from diskmgt_core.discovery.schema import DeviceKind, DeviceNode


PARTED_GPT = """\
Model: Samsung SSD 970 EVO Plus 1TB (nvme)
Disk /dev/nvme0n1: 1000GB
Sector size (logical/physical): 512B/512B
Partition Table: gpt
Disk Flags:

Number  Start   End     Size    File system  Name                  Flags
 1      1049kB  538MB   537MB   fat32        EFI System Partition  boot, esp
 2      538MB   1000GB  1000GB  ext4

"""

PARTED_MSDOS = """\
Model: SD SC64G (sd/mmc)
Disk /dev/mmcblk0: 63.9GB
Sector size (logical/physical): 512B/512B
Partition Table: msdos
Disk Flags:

Number  Start   End     Size    Type     File system  Flags
 1      4194kB  273MB   268MB   primary  fat32        lba
 2      273MB   63.9GB  63.6GB  primary  ext4
"""


def _fake_run(outputs):
    """subprocess.run replacement keyed on the first two argv items."""
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        key = tuple(cmd[:2])
        if key not in outputs:
            raise FileNotFoundError(cmd[0])
        return subprocess.CompletedProcess(cmd, 0, outputs[key], "")

    run.calls = calls
    return run


@pytest.fixture
def no_mounts(monkeypatch):
    monkeypatch.setattr(psutil, "disk_partitions", lambda all=False: [])


class TestParsers:

    def test_parted_flags_gpt(self):
        assert parse_parted_flags(PARTED_GPT) == {1: ["boot", "esp"]}

    def test_parted_flags_without_boot(self):
        assert parse_parted_flags(PARTED_MSDOS) == {}

    def test_parted_flags_ignores_preamble(self):
        assert parse_parted_flags("Model: boot thing\nDisk Flags: boot\n") == {}

    def test_lxc_storage_matches_mount(self):
        text = (
            "default,dir,/media/pi/backup/lxd/storage-pools/default,,5\n"
            "other,zfs,tank/lxd,,2\n"
        )
        pools = parse_lxc_storage_csv(text, "/media/pi/backup")
        assert [p["name"] for p in pools] == ["default"]
        assert pools[0]["driver"] == "dir"
        assert pools[0]["used"] == "5"

    def test_lxc_storage_short_rows(self):
        assert parse_lxc_storage_csv("default,dir\n", "/media/pi/backup") == []

    def test_count_csv_rows(self):
        assert count_csv_rows("web,RUNNING\ndb,STOPPED\n\n") == 2

    @pytest.mark.parametrize("text,expected", [
        ('PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\nNAME="Debian GNU/Linux"\n', "Debian GNU/Linux 12 (bookworm)"),
        ('NAME="Arch Linux"\nID=arch\n', "Arch Linux"),
        ("ID=weird\n", UNKNOWN_LINUX),
    ])
    def test_os_release(self, text, expected):
        assert parse_os_release(text) == expected


class TestContentProber:

    def test_container_storage_requires_marker(self, tmp_path, monkeypatch):
        run = _fake_run({})
        monkeypatch.setattr(subprocess, "run", run)
        assert ContentProber().detect_container_storage(str(tmp_path)).is_detected is False
        assert run.calls == []

    def test_container_storage_with_pool_and_count(self, tmp_path, monkeypatch):
        (tmp_path / "lxd" / "storage-pools").mkdir(parents=True)
        monkeypatch.setattr(subprocess, "run", _fake_run({
            ("lxc", "storage"): f"default,dir,{tmp_path}/lxd/storage-pools/default,,3\n",
            ("lxc", "list"): "web,RUNNING\ndb,STOPPED\n",
        }))
        found = ContentProber().detect_container_storage(str(tmp_path))
        assert found.is_detected is True
        assert found.pool_name == "default"
        assert found.container_count == 2

    def test_container_storage_without_lxc_binary(self, tmp_path, monkeypatch):
        (tmp_path / "storage").mkdir()
        monkeypatch.setattr(subprocess, "run", _fake_run({}))
        found = ContentProber().detect_container_storage(str(tmp_path))
        assert found.is_detected is True
        assert found.pool_name is None
        assert found.container_count == 0

    def test_os_release_on_mount(self, tmp_path):
        (tmp_path / "etc").mkdir()
        (tmp_path / "etc" / "os-release").write_text('PRETTY_NAME="Ubuntu 22.04.4 LTS"\n')
        assert ContentProber().detect_operating_system("/dev/sdb2", str(tmp_path)) == "Ubuntu 22.04.4 LTS"

    def test_windows_marker(self, tmp_path):
        (tmp_path / "Windows").mkdir()
        assert ContentProber().detect_operating_system("/dev/sdb1", str(tmp_path)) == "Windows"

    def test_no_os_when_unmounted(self):
        assert ContentProber().detect_operating_system("/dev/sdb1", None) is None

    def test_boot_flag_from_parted(self, monkeypatch, no_mounts):
        run = _fake_run({("parted", "-s"): PARTED_GPT})
        monkeypatch.setattr(subprocess, "run", run)
        prober = ContentProber()
        assert prober.is_boot_flagged("/dev/nvme0n1p1", "/dev/nvme0n1") is True
        assert prober.is_boot_flagged("/dev/nvme0n1p2", "/dev/nvme0n1") is False
        assert run.calls[0] == ["parted", "-s", "/dev/nvme0n1", "print"]

    def test_boot_flag_from_boot_mount(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", _fake_run({("parted", "-s"): PARTED_MSDOS}))
        monkeypatch.setattr(psutil, "disk_partitions", lambda all=False: [
            SimpleNamespace(device="/dev/mmcblk0p1", mountpoint="/boot/firmware"),
            SimpleNamespace(device="/dev/mmcblk0p2", mountpoint="/"),
        ])
        prober = ContentProber()
        assert prober.is_boot_flagged("/dev/mmcblk0p1") is True
        assert prober.is_boot_flagged("/dev/mmcblk0p2") is False

    def test_volume_label_only_for_fat_family(self, monkeypatch):
        run = _fake_run({("blkid", "-s"): "CAMERA\n"})
        monkeypatch.setattr(subprocess, "run", run)
        prober = ContentProber()
        assert prober.volume_label("/dev/sdb1", "vfat") == "CAMERA"
        assert prober.volume_label("/dev/sdb1", "ext4") is None
        assert len(run.calls) == 1

    def test_list_entries_sorted_and_limited(self, tmp_path):
        for name in ["zeta", "Backups", "alpha", "DCIM"]:
            (tmp_path / name).mkdir()
        assert ContentProber().list_entries(str(tmp_path), limit=3) == ("Backups", "DCIM", "alpha")

    def test_list_entries_missing_mount(self, tmp_path):
        assert ContentProber().list_entries(str(tmp_path / "gone")) == ()

    def test_collect(self, tmp_path, monkeypatch, no_mounts):
        (tmp_path / "Backups").mkdir()
        monkeypatch.setattr(subprocess, "run", _fake_run({("parted", "-s"): PARTED_MSDOS}))
        disk = DeviceNode(name="sdb", size_bytes=8053063680, kind=DeviceKind.DISK, model="Flash Disk")
        part = DeviceNode(name="sdb1", size_bytes=8052014080, kind=DeviceKind.PARTITION,
                          mount_path=str(tmp_path), fs_type="ext4", fs_uuid="u-1")
        probe = ContentProber().collect(part, [disk, part])
        assert probe.container.is_detected is False
        assert probe.os_label is None
        assert probe.boot_flagged is False
        assert probe.volume_label is None
        assert probe.hardware_model == "Flash Disk"
        assert probe.top_level_entries == ("Backups",)


class TestInspectDisk:

    def test_partition_table(self):
        assert parse_partition_table(PARTED_GPT) == "gpt"
        assert parse_partition_table(PARTED_MSDOS) == "msdos"
        assert parse_partition_table("Partition Table: unknown\n") is None
        assert parse_partition_table("") is None

    def test_report_for_boot_disk(self, tmp_path, monkeypatch, no_mounts):
        (tmp_path / "etc").mkdir()
        (tmp_path / "etc" / "os-release").write_text('PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\n')
        run = _fake_run({("parted", "-s"): PARTED_GPT})
        monkeypatch.setattr(subprocess, "run", run)
        disk = DeviceNode(name="nvme0n1", size_bytes=1000204886016, kind=DeviceKind.DISK)
        esp = DeviceNode(name="nvme0n1p1", size_bytes=536870912, kind=DeviceKind.PARTITION, fs_type="vfat")
        root = DeviceNode(name="nvme0n1p2", size_bytes=999667015680, kind=DeviceKind.PARTITION,
                          mount_path=str(tmp_path), fs_type="ext4", fs_uuid="root-1")
        other = DeviceNode(name="sda", size_bytes=1, kind=DeviceKind.DISK)

        report = ContentProber().inspect_disk(disk, [disk, esp, root, other])
        assert report.partition_table == "gpt"
        assert report.bootable is True
        assert report.boot_partitions == ((1, ("boot", "esp")),)
        assert report.partitions == (esp, root)
        assert report.os_installs == (("/dev/nvme0n1p2", "Debian GNU/Linux 12 (bookworm)"),)
        assert report.container.is_detected is False
        assert run.calls[0] == ["parted", "-s", "/dev/nvme0n1", "print"]

    def test_report_uses_mount_table_for_unlisted_mounts(self, tmp_path, monkeypatch):
        (tmp_path / "lxd").mkdir()
        monkeypatch.setattr(subprocess, "run", _fake_run({("parted", "-s"): PARTED_MSDOS}))
        monkeypatch.setattr(psutil, "disk_partitions", lambda all=False: [
            SimpleNamespace(device="/dev/sdb1", mountpoint=str(tmp_path)),
        ])
        disk = DeviceNode(name="sdb", size_bytes=1, kind=DeviceKind.DISK)
        part = DeviceNode(name="sdb1", size_bytes=1, kind=DeviceKind.PARTITION, fs_uuid="u-1")
        report = ContentProber().inspect_disk(disk, [disk, part])
        assert report.partition_table == "msdos"
        assert report.bootable is False
        assert report.container.is_detected is True
        assert report.container.pool_name is None

    def test_report_without_parted(self, monkeypatch, no_mounts):
        monkeypatch.setattr(subprocess, "run", _fake_run({}))
        disk = DeviceNode(name="sdb", size_bytes=1, kind=DeviceKind.DISK)
        report = ContentProber().inspect_disk(disk, [disk])
        assert report.partition_table is None
        assert report.boot_partitions == ()
        assert report.partitions == ()
