from kumbhaka.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


class Event:
    """Synchronous multi-listener hook.

    A failing listener is logged and skipped, so a broken subscriber
    (a busy announcer, a dropped websocket) never interrupts the emitter.
    Listeners run inline on the emitting thread; anything that must reach
    the event loop hands itself over there (see ``ConnectionManager.broadcast``).
    """

    def __init__(self):
        self._listeners = []

    def add_listener(self, listener):
        if not callable(listener):
            raise ValueError("Listener must be callable")
        self._listeners.append(listener)

    def remove_listener(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, *args, **kwargs):
        for listener in list(self._listeners):
            try:
                listener(*args, **kwargs)
            except Exception:
                logger.exception(f"Error in event listener {getattr(listener, '__name__', listener)!r}")
