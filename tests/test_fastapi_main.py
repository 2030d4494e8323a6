import time
from datetime import date

import pytest
from fastapi.testclient import TestClient

from kumbhaka.adapters.memory_adapters.in_memory_record_store import InMemoryRecordStore
from kumbhaka.adapters.settings_adapters.json_settings_store import InMemorySettingsStore
from kumbhaka.config import AppConfig
from kumbhaka.main.fastapi_main import Args, create_app


def wait_until_ready(client, attempts=100):
    for _ in range(attempts):
        if client.get("/state").json()["ready"]:
            return
        time.sleep(0.02)
    pytest.fail("readiness gate never opened")


@pytest.fixture
def client():
    config = AppConfig(tick_interval=0.01, required_stable_duration=0.0)
    app = create_app(config=config, store=InMemoryRecordStore(), settings_store=InMemorySettingsStore())
    with TestClient(app) as test_client:
        wait_until_ready(test_client)
        yield test_client


def run_session(client):
    assert client.post("/start").status_code == 200
    assert client.post("/stop/1").json()["phase"] == "Phase2Running"
    return client.post("/stop/2").json()


def test_full_session_is_saved_and_listed_today(client):
    state = run_session(client)

    assert state["phase"] == "Idle"
    assert state["can_share"] is True

    today = client.get("/sessions/today").json()
    assert today["count"] == 1
    assert len(today["sessions"][0]["durations"]) == 2


def test_out_of_phase_taps_conflict(client):
    assert client.post("/stop/1").status_code == 409
    assert client.post("/stop/3").status_code == 404
    client.post("/start")
    assert client.post("/start").status_code == 409


def test_manual_mode_through_settings(client):
    response = client.put("/settings", json={"start_mode": "manual"})
    assert response.json()["start_mode"] == "manual"

    client.post("/start")
    assert client.post("/stop/1").json()["phase"] == "WaitingForPhase2Start"
    assert client.get("/state").json()["titles"]["start"] == "プーラカスタート"
    assert client.post("/start").json()["phase"] == "Phase2Running"


def test_settings_reject_bad_values(client):
    assert client.put("/settings", json={"goal_seconds": -1}).status_code == 422
    assert client.put("/settings", json={"goal_color": "green"}).status_code == 422
    assert client.get("/settings").json()["goal_color"] == "red"


def test_share_endpoints(client):
    assert client.get("/share/last").status_code == 404

    run_session(client)
    last = client.get("/share/last").json()["text"]
    assert last.startswith("開始: ")
    assert "レーチャカ: " in last

    session_id = client.get("/sessions").json()[0]["id"]
    assert client.get(f"/share/session/{session_id}").json()["text"] == last

    day = client.get(f"/share/day/{date.today().isoformat()}").json()["text"]
    assert day.startswith(date.today().strftime("%Y/%m/%d") + "\n\n開始: ")
    assert client.get("/share/day/not-a-date").status_code == 400


def test_delete_session(client):
    run_session(client)
    session_id = client.get("/sessions").json()[0]["id"]

    assert client.delete(f"/sessions/{session_id}").json() == {"deleted": session_id}
    assert client.delete(f"/sessions/{session_id}").status_code == 404
    assert client.get("/sessions/today").json()["count"] == 0


def test_history_days_start_collapsed(client):
    run_session(client)
    today = date.today().isoformat()

    days = client.get("/history").json()
    assert days[0]["summary"]["day"] == today
    assert days[0]["summary"]["count"] == 1
    assert days[0]["collapsed"] is True
    assert days[0]["sessions"] == []

    assert client.post(f"/history/toggle/{today}").json()["collapsed"] is False
    assert len(client.get("/history").json()[0]["sessions"]) == 1


def test_websocket_start_and_stop(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "tick"

        ws.send_json({"type": "start"})
        ack = _next_message(ws, "ack")
        assert ack["data"]["accepted"] is True
        assert ack["data"]["state"]["phase"] == "Phase1Running"

        ws.send_json({"type": "stop", "phase": 2})
        ack = _next_message(ws, "ack")
        assert ack["data"]["accepted"] is False


def _next_message(ws, msg_type, limit=500):
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == msg_type:
            return message
    pytest.fail(f"no {msg_type} message received")


def test_websocket_rejects_bad_messages_and_stays_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()

        for bad in ['{"type": "stop", "phase": "one"}', '[1, 2]', '{"type": "pause"}', 'not json']:
            ws.send_text(bad)
            ack = _next_message(ws, "ack")
            assert ack["data"]["accepted"] is False

        ws.send_json({"type": "start"})
        ack = _next_message(ws, "ack")
        assert ack["data"]["accepted"] is True


def test_app_starts_with_out_of_range_tick_interval_from_env():
    config = AppConfig.from_env(env={"KUMBHAKA_TICK_INTERVAL": "0", "KUMBHAKA_REQUIRED_STABLE": "0"})
    app = create_app(config=config, store=InMemoryRecordStore(), settings_store=InMemorySettingsStore())
    with TestClient(app) as test_client:
        wait_until_ready(test_client)
        assert test_client.get("/state").json()["phase"] == "Idle"


def test_cli_args_do_not_mutate_the_given_config():
    config = AppConfig(db_path="data/original.db")
    create_app(Args(db_path="/tmp/override.db"), config=config,
               store=InMemoryRecordStore(), settings_store=InMemorySettingsStore())
    assert config.db_path == "data/original.db"
