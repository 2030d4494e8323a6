import json
import asyncio
import argparse
from dataclasses import dataclass, replace
from datetime import date
from contextlib import asynccontextmanager
from typing import List, Literal, Optional

import uvicorn
from pydantic import BaseModel, Field, ValidationError
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from kumbhaka.config import AppConfig
from kumbhaka.core.phase_machine import PhaseMachine
from kumbhaka.core.readiness_gate import ReadinessGate
from kumbhaka.core.session_record import SessionRecord
from kumbhaka.core.settings import (
    GoalHighlightColor,
    SettingsProvider,
    SettingsSnapshot,
    StartMode,
    TimeDisplayStyle,
)
from kumbhaka.features.history import CollapsedDays, HistoryService, summarize_day
from kumbhaka.features.share_text import day_share_text, session_share_text
from kumbhaka.ports.record_store_port import RecordStorePort
from kumbhaka.ports.settings_port import SettingsPort
from kumbhaka.adapters.fastapi_adapters.helper_adapters import ConnectionManager, Notifier
from kumbhaka.adapters.memory_adapters.sqlite_record_store import SqliteRecordStore
from kumbhaka.adapters.settings_adapters.json_settings_store import JsonSettingsStore
from kumbhaka.utils import Clock
from kumbhaka.utils import custom_exception as ce
from kumbhaka.utils.logging_handler import setup_logger
from kumbhaka.utils.time_conversions import format_seconds, format_time_only

logger = setup_logger(__name__)


@dataclass
class Args:
    host: Optional[str] = None
    port: Optional[int] = None
    db_path: Optional[str] = None
    settings_path: Optional[str] = None


class SettingsUpdate(BaseModel):
    start_mode: Optional[StartMode] = None
    display_style: Optional[TimeDisplayStyle] = None
    goal_seconds: Optional[float] = Field(default=None, ge=0)
    goal_color: Optional[GoalHighlightColor] = None
    auto_goal_enabled: Optional[bool] = None


class ControlMessage(BaseModel):
    type: Literal["start", "stop"]
    phase: int = 0


def record_to_dict(record: SessionRecord, settings: SettingsSnapshot, history: HistoryService,
                   goals: Optional[List[float]] = None) -> dict:
    return {
        "id": record.id,
        "started_at": record.started_at.isoformat(),
        "ended_at": record.ended_at.isoformat() if record.ended_at else None,
        "time": format_time_only(record.started_at),
        "durations": record.durations,
        "durations_text": [format_seconds(d, settings.display_style) for d in record.durations],
        "colors": [c.value for c in history.highlight(record, settings, goals)],
    }


def settings_to_dict(settings: SettingsSnapshot) -> dict:
    data = settings.as_dict()
    data["choices"] = {
        "start_mode": {m.value: m.label for m in StartMode},
        "display_style": {s.value: s.label for s in TimeDisplayStyle},
        "goal_color": {c.value: c.label for c in GoalHighlightColor},
    }
    return data


def _parse_day(day: str) -> date:
    try:
        return date.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {day}")


# --- APP FACTORY ---
def create_app(
    args: Optional[Args] = None,
    config: Optional[AppConfig] = None,
    store: Optional[RecordStorePort] = None,
    settings_store: Optional[SettingsPort] = None,
    clock: Optional[Clock] = None,
):
    args = args or Args()
    config = config or AppConfig.from_env()
    config = replace(
        config,
        db_path=args.db_path or config.db_path,
        settings_path=args.settings_path or config.settings_path,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = asyncio.get_running_loop()
        app_clock = clock or Clock()

        record_store = store or SqliteRecordStore(db_path=config.db_path)
        settings = SettingsProvider(settings_store or JsonSettingsStore(config.settings_path))

        gate = ReadinessGate(
            tick_interval=config.tick_interval,
            hang_threshold=config.hang_threshold,
            required_stable_duration=config.required_stable_duration,
            clock=app_clock,
        )
        machine = PhaseMachine(
            store=record_store,
            settings=settings,
            gate=gate,
            clock=app_clock,
            phase_names=config.phase_names,
            announce_interval=config.announce_interval,
        )
        history = HistoryService(record_store, clock=app_clock, phase_count=machine.phase_count)

        manager = ConnectionManager(loop=loop)
        notifier = Notifier(manager, snapshot=machine.snapshot)
        gate.on_tick.add_listener(machine.on_clock_tick)
        gate.on_tick.add_listener(notifier.notify_tick)
        gate.on_ready.add_listener(notifier.notify_ready)
        machine.on_phase_change.add_listener(notifier.notify_phase)
        machine.on_announce.add_listener(notifier.notify_announce)
        machine.on_session_saved.add_listener(notifier.notify_saved)

        app.state.connection_manager = manager
        app.state.settings = settings
        app.state.gate = gate
        app.state.machine = machine
        app.state.history = history
        app.state.collapsed_days = CollapsedDays()

        gate.start()
        logger.info(f"Recorder ready to serve with phases {list(machine.phase_names)}.")

        yield

        # Cleanup
        await gate.stop()
        record_store.close()

    app = FastAPI(title="Kumbhaka Time Recorder", lifespan=lifespan)

    # --- Timer ---

    @app.get("/state")
    async def get_state():
        return app.state.machine.snapshot()

    @app.post("/start")
    async def start():
        machine = app.state.machine
        if not machine.tap_start():
            raise HTTPException(status_code=409, detail=f"Start not available in {machine.state.name}")
        return machine.snapshot()

    @app.post("/stop/{phase_number}")
    async def stop(phase_number: int):
        machine = app.state.machine
        if not 1 <= phase_number <= machine.phase_count:
            raise HTTPException(status_code=404, detail=f"No phase {phase_number}")
        if not machine.tap_stop(phase_number):
            raise HTTPException(
                status_code=409, detail=f"Phase{phase_number}Stop not available in {machine.state.name}")
        return machine.snapshot()

    # --- Sessions ---

    @app.get("/sessions/today")
    async def today_sessions():
        settings = app.state.settings.snapshot()
        history = app.state.history
        sessions = history.today_sessions()
        goals = history.goals(settings)
        return {
            "count": len(sessions),
            "sessions": [record_to_dict(r, settings, history, goals) for r in sessions],
        }

    @app.get("/sessions")
    async def all_sessions():
        settings = app.state.settings.snapshot()
        history = app.state.history
        goals = history.goals(settings)
        return [record_to_dict(r, settings, history, goals) for r in history.all_sessions()]

    @app.delete("/sessions/{record_id}")
    async def delete_session(record_id: int):
        try:
            app.state.history.delete_session(record_id)
        except ce.RecordNotFoundError:
            raise HTTPException(status_code=404, detail=f"Session {record_id} not found")
        except ce.RecordStoreError as e:
            logger.error(f"Delete failed for {record_id}: {e}")
            raise HTTPException(status_code=503, detail="Record store unavailable")
        return {"deleted": record_id}

    # --- History ---

    @app.get("/history")
    async def history_view():
        settings = app.state.settings.snapshot()
        history = app.state.history
        collapsed = app.state.collapsed_days
        groups = history.grouped_by_day()
        goals = history.goals(settings)
        collapsed.sync(g.day for g in groups)
        return [
            {
                "summary": summarize_day(g.day, g.sessions, history.phase_count).as_dict(),
                "collapsed": collapsed.is_collapsed(g.day),
                "sessions": [] if collapsed.is_collapsed(g.day)
                else [record_to_dict(r, settings, history, goals) for r in g.sessions],
            }
            for g in groups
        ]

    @app.post("/history/toggle/{day}")
    async def toggle_day(day: str):
        parsed = _parse_day(day)
        return {"day": parsed.isoformat(), "collapsed": app.state.collapsed_days.toggle(parsed)}

    # --- Share ---

    @app.get("/share/last")
    async def share_last():
        machine = app.state.machine
        if not machine.can_share:
            raise HTTPException(status_code=404, detail="No completed session yet")
        style = app.state.settings.snapshot().display_style
        return {"text": session_share_text(machine.last_completed, style, machine.phase_names)}

    @app.get("/share/session/{record_id}")
    async def share_session(record_id: int):
        record = None
        try:
            record = app.state.history.store.get(record_id)
        except ce.RecordStoreError as e:
            logger.error(f"Share lookup failed for {record_id}: {e}")
        if record is None:
            raise HTTPException(status_code=404, detail=f"Session {record_id} not found")
        style = app.state.settings.snapshot().display_style
        return {"text": session_share_text(record, style, app.state.machine.phase_names)}

    @app.get("/share/day/{day}")
    async def share_day(day: str):
        parsed = _parse_day(day)
        sessions = app.state.history.sessions_on(parsed)
        if not sessions:
            raise HTTPException(status_code=404, detail=f"No sessions on {parsed.isoformat()}")
        style = app.state.settings.snapshot().display_style
        return {"text": day_share_text(parsed, sessions, style, app.state.machine.phase_names)}

    # --- Settings ---

    @app.get("/settings")
    async def get_settings():
        return settings_to_dict(app.state.settings.snapshot())

    @app.put("/settings")
    async def put_settings(update: SettingsUpdate):
        snapshot = app.state.settings.update(**update.model_dump(exclude_none=True))
        return settings_to_dict(snapshot)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        manager = app.state.connection_manager
        machine = app.state.machine

        await manager.connect(websocket)
        try:
            await websocket.send_text(json.dumps({"type": "tick", "data": machine.snapshot()}, ensure_ascii=False))

            while True:
                data = await websocket.receive_text()
                try:
                    msg = ControlMessage.model_validate_json(data)
                except ValidationError as e:
                    # bad input is refused, the connection stays open
                    logger.warning(f"Rejected websocket message {data!r}: {e.error_count()} error(s)")
                    accepted = False
                else:
                    if msg.type == "start":
                        accepted = machine.tap_start()
                    else:
                        accepted = machine.tap_stop(msg.phase)
                await websocket.send_text(json.dumps(
                    {"type": "ack", "data": {"accepted": accepted, "state": machine.snapshot()}},
                    ensure_ascii=False))

        except WebSocketDisconnect:
            manager.disconnect(websocket)
        except Exception as e:
            logger.error(f"WS Error: {e}")
            manager.disconnect(websocket)

    return app


def run_app(args: Args) -> None:
    config = AppConfig.from_env()
    app = create_app(args, config=config)
    try:
        uvicorn.run(app, host=args.host or config.host, port=args.port or config.port)
    except Exception as e:
        logger.error(f"error in run_app: {e}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Kumbhaka time recorder server.")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--db-path", type=str, default=None)
    parser.add_argument("--settings-path", type=str, default=None)
    parsed_args = parser.parse_args()
    run_app(Args(**vars(parsed_args)))


if __name__ == "__main__":
    logger.info("=" * 50)
    main()
