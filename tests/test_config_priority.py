import json

import pytest
from typer.testing import CliRunner

from nzunload.config import Settings, loadSettings
from nzunload.main import app

runner = CliRunner()


def test_priority_cli_over_env_over_config(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        "\n".join([
            'host: "1.1.1.1"',
            "port: 1111",
            'database: "cfg_db"',
            'username: "cfg_user"',
            "poll_interval_seconds: 0.5",
        ]),
        encoding="utf-8",
    )

    # ENV overrides config
    monkeypatch.setenv("NZ_HOST", "2.2.2.2")
    monkeypatch.setenv("NZ_PORT", "2222")

    # CLI overrides env
    loaded = loadSettings(str(cfg), {"host": "3.3.3.3", "username": None})

    assert loaded.settings.host == "3.3.3.3"
    assert loaded.settings.port == 2222
    assert loaded.settings.database == "cfg_db"
    assert loaded.settings.username == "cfg_user"
    assert loaded.settings.poll_interval_seconds == 0.5
    assert loaded.sources_used == ["config", "env", "cli"]


def test_defaults_without_sources():
    loaded = loadSettings(None, {})
    assert loaded.settings == Settings()
    assert loaded.sources_used == []


def test_invalid_env_port_is_rejected(monkeypatch):
    monkeypatch.setenv("NZ_PORT", "not-a-port")
    with pytest.raises(ValueError):
        loadSettings(None, {})


def test_export_without_connection_settings_exits_2(tmp_path):
    result = runner.invoke(
        app,
        [
            "--log-dir",
            str(tmp_path / "logs"),
            "--report-dir",
            str(tmp_path / "reports"),
            "--run-id",
            "run-1",
            "export",
            "--table",
            "EMP",
            "--out",
            str(tmp_path / "out.csv"),
        ],
    )

    assert result.exit_code == 2
    report = json.loads((tmp_path / "reports" / "report_export_run-1.json").read_text(encoding="utf-8"))
    assert report["status"] == "FAILED"
    assert report["errors"][0]["code"] == "CONFIG_ERROR"
    assert (tmp_path / "logs" / "export_run-1.log").exists()


def test_unknown_log_level_exits_2(tmp_path):
    result = runner.invoke(
        app,
        ["--log-dir", str(tmp_path / "logs"), "--log-level", "LOUD", "show-query", "--table", "EMP"],
    )
    assert result.exit_code == 2
