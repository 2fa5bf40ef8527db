from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from linkshades.core.recording.events import DeviceEventTrace
from linkshades.interfaces.device_sink import DeviceEvent
from linkshades.model.device import DeviceRecord

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _event(kind="status"):
    rec = DeviceRecord.new("42", T0).with_status(now=T0, model=None, firmware=None, raw_position=850)
    return DeviceEvent(chip_id="42", kind=kind, record=rec, ts_utc=T0.isoformat())


def test_events_are_appended_as_jsonl(tmp_path):
    p = tmp_path / "logs" / "events.jsonl"
    trace = DeviceEventTrace(logger=logging.getLogger("test.events"), file_path=p, flush_interval_s=0.01)
    trace.on_device_event(_event("status"))
    trace.on_device_event(_event("offline"))
    trace.close()

    lines = [json.loads(x) for x in p.read_text(encoding="utf-8").splitlines()]
    assert [x["kind"] for x in lines] == ["status", "offline"]
    assert lines[0]["chip_id"] == "42"
    assert lines[0]["record"]["currentPosition"] == 85
    assert lines[0]["ts_utc"] == T0.isoformat()


def test_without_file_only_logs(caplog):
    trace = DeviceEventTrace(logger=logging.getLogger("test.events"))
    with caplog.at_level(logging.DEBUG, logger="test.events"):
        trace.on_device_event(_event())
    trace.close()

    assert "DEVICE_EVENT chip_id=42 kind=status" in caplog.text
