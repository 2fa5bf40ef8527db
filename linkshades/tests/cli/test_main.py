from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

import linkshades.cli.commands as commands
import linkshades.cli.main as mod
from linkshades.app.config import GatewayConfig
from linkshades.cli.args import config_overrides, parse_args
from linkshades.core.device_store import DeviceStore
from linkshades.model.device import DeviceRecord

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("PORT", "SHADE_MIN", "SHADE_MAX", "DATA_FILE", "LINKSHADES_PORT", "LINKSHADES_DATA_FILE"):
        monkeypatch.delenv(var, raising=False)


def test_overrides_only_include_given_flags():
    args = parse_args(["serve", "--port", "4500", "--shade-min", "70"])
    assert config_overrides(args) == {"port": 4500, "shade_min": 70}


def test_convert_percent(capsys):
    assert mod.main(["convert", "--percent", "50"]) == 0
    assert "command 87" in capsys.readouterr().out


def test_convert_command_with_custom_calibration(capsys):
    assert mod.main(["convert", "--command", "50", "--shade-min", "0", "--shade-max", "200"]) == 0
    assert "-> 25%" in capsys.readouterr().out


def test_convert_raw(capsys):
    assert mod.main(["convert", "--raw", "850"]) == 0
    assert "-> 85%" in capsys.readouterr().out


def test_convert_requires_one_value():
    with pytest.raises(SystemExit):
        mod.main(["convert"])


def test_config_error_prints_hint(capsys):
    assert mod.main(["convert", "--percent", "1", "--shade-min", "100", "--shade-max", "50"]) == 1
    out = capsys.readouterr().out
    assert "ERROR: Invalid shade calibration." in out
    assert "Hint:" in out


def test_devices_lists_store(tmp_path, capsys):
    p = tmp_path / "shades.json"
    rec = DeviceRecord.new("42", T0).with_status(now=T0, model="wired", firmware=24, raw_position=850)
    DeviceStore(p).save({"42": rec.with_name("Kitchen")})

    assert mod.main(["devices", "--data-file", str(p)]) == 0
    out = capsys.readouterr().out
    assert "1 device(s)" in out
    assert "42 'Kitchen'" in out
    assert "position=85%" in out
    # the store's online flag is stale outside a running gateway
    assert "online" not in out


def test_devices_empty_store(tmp_path, capsys):
    assert mod.main(["devices", "--data-file", str(tmp_path / "none.json")]) == 0
    assert "No devices" in capsys.readouterr().out


def test_serve_runs_until_stopped(tmp_path, capsys):
    cfg = GatewayConfig(host="127.0.0.1", port=0, data_file=str(tmp_path / "s.json"))
    stop = threading.Event()
    stop.set()
    assert commands.cmd_serve(cfg, stop_event=stop) == 0
    assert "listening on 127.0.0.1:" in capsys.readouterr().out
