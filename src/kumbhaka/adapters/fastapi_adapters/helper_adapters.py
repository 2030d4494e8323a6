import json
import asyncio
import threading
from typing import Any, Callable, Dict

from fastapi import WebSocket

from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


# --- CONNECTION MANAGER ---
class ConnectionManager:
    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.active_connections: set[WebSocket] = set()
        self._lock = threading.Lock()
        self.loop = loop

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        with self._lock:
            self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        with self._lock:
            self.active_connections.discard(websocket)

    @property
    def has_connections(self) -> bool:
        with self._lock:
            return bool(self.active_connections)

    def broadcast(self, msg_type: str, data: Any):
        msg = json.dumps({"type": msg_type, "data": data}, ensure_ascii=False)
        # callable from the loop thread or any other thread
        asyncio.run_coroutine_threadsafe(self._send_to_all(msg), self.loop)

    async def _send_to_all(self, message: str):
        with self._lock:
            current_sockets = list(self.active_connections)
        for ws in current_sockets:
            try:
                await ws.send_text(message)
            except Exception:
                self.disconnect(ws)


class Notifier:
    """Turns gate and phase machine events into websocket messages.

    ``snapshot`` is called with the tick's ``now`` so every client renders
    elapsed time and button state from the same sample.
    """

    def __init__(self, manager: ConnectionManager, snapshot: Callable[[float], Dict[str, Any]]):
        self.manager = manager
        self.snapshot = snapshot

    def notify_tick(self, now: float, ready: bool, **kwargs):
        if not self.manager.has_connections:
            return
        self.manager.broadcast("tick", self.snapshot(now))

    def notify_ready(self, now: float, **kwargs):
        self.manager.broadcast("ready", {"ready": True})

    def notify_phase(self, previous: str, current: str, **kwargs):
        self.manager.broadcast("phase", {"previous": previous, "current": current})

    def notify_announce(self, phase: int, phase_name: str, seconds: int, text: str, **kwargs):
        self.manager.broadcast("announce", {
            "phase": phase,
            "phase_name": phase_name,
            "seconds": seconds,
            "text": text,
        })

    def notify_saved(self, record, **kwargs):
        self.manager.broadcast("saved", {"id": record.id, "durations": record.durations})
