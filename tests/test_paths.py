import os
from diskmgt_core.utils.paths import config_dir, log_dir, log_subdir, registry_path, settings_path


def test_env_overrides_take_precedence(tmp_path, monkeypatch):
    cfg = tmp_path / "cfg"
    logs = tmp_path / "log"
    monkeypatch.setenv("DISKMGT_CONFIG_DIR", str(cfg))
    monkeypatch.setenv("DISKMGT_LOG_DIR", str(logs))
    assert config_dir() == str(cfg)
    assert log_dir() == str(logs)
    assert registry_path() == str(cfg / "drives.json")
    assert settings_path() == str(cfg / "settings.yml")


def test_xdg_dirs_are_used(tmp_path, monkeypatch):
    monkeypatch.delenv("DISKMGT_CONFIG_DIR", raising=False)
    monkeypatch.delenv("DISKMGT_LOG_DIR", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    assert config_dir() == os.path.join(str(tmp_path / "config"), "diskmgt")
    assert log_dir() == os.path.join(str(tmp_path / "state"), "diskmgt", "log")


def test_registry_file_setting(tmp_path, monkeypatch):
    monkeypatch.setenv("DISKMGT_CONFIG_DIR", str(tmp_path))
    assert registry_path("lab.json") == str(tmp_path / "lab.json")
    elsewhere = str(tmp_path / "shared" / "drives.json")
    assert registry_path(elsewhere) == elsewhere


def test_audit_subdir_is_created(tmp_path, monkeypatch):
    monkeypatch.setenv("DISKMGT_LOG_DIR", str(tmp_path / "logs"))
    p = log_subdir("audit", "2026", "01", "01")
    assert os.path.isdir(p)
    assert p.startswith(str(tmp_path / "logs"))
