import asyncio
import threading
import time
from unittest.mock import MagicMock

from rasteredit.infrastructure.telemetry.activity_sink import IMAGE_EDITED, SupabaseActivitySink, dispatch


def test_records_through_rpc(monkeypatch):
    monkeypatch.setenv("SUPABASE_DISABLED", "0")
    client = MagicMock()
    SupabaseActivitySink(client).record(IMAGE_EDITED, {"tool": "blur", "user_id": "u1"})
    name, payload = client.rpc.call_args.args
    assert name == "increment_user_activity"
    assert payload["p_user_id"] == "u1"
    assert payload["p_activity_type"] == "image_edited"
    assert payload["p_metadata"]["tool"] == "blur"
    client.rpc.return_value.execute.assert_called_once()


def test_anonymous_activity_not_sent(monkeypatch):
    monkeypatch.setenv("SUPABASE_DISABLED", "0")
    client = MagicMock()
    SupabaseActivitySink(client).record(IMAGE_EDITED, {"tool": "blur"})
    client.rpc.assert_not_called()


def test_disabled_sink_only_logs(monkeypatch):
    monkeypatch.setenv("SUPABASE_DISABLED", "1")
    client = MagicMock()
    SupabaseActivitySink(client).record(IMAGE_EDITED, {"tool": "blur", "user_id": "u1"})
    client.rpc.assert_not_called()


def test_rpc_errors_are_swallowed(monkeypatch):
    monkeypatch.setenv("SUPABASE_DISABLED", "0")
    client = MagicMock()
    client.rpc.side_effect = RuntimeError("network down")
    SupabaseActivitySink(client).record(IMAGE_EDITED, {"user_id": "u1"})
    client.rpc.assert_called_once()


def test_dispatch_returns_before_sink_finishes():
    finished = threading.Event()

    class SlowSink:
        def record(self, event_type, metadata):
            time.sleep(0.3)
            finished.set()

    async def run():
        started = time.perf_counter()
        dispatch(SlowSink(), IMAGE_EDITED, {"user_id": "u1"})
        elapsed = time.perf_counter() - started
        assert not finished.is_set()
        return elapsed

    assert asyncio.run(run()) < 0.1
    assert finished.is_set()


def test_dispatch_survives_failing_sink():
    class BrokenSink:
        def record(self, event_type, metadata):
            raise RuntimeError("boom")

    async def run():
        dispatch(BrokenSink(), IMAGE_EDITED, {})
        await asyncio.sleep(0.05)
        return "done"

    assert asyncio.run(run()) == "done"
