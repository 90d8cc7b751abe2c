import logging
import threading
import time
from itertools import count

logger = logging.getLogger(__name__)

_handle_ids = count(1)


class TimerHandle:
    """Handle for a deferred or recurring callback. ``cancel()`` is idempotent."""

    def __init__(self, name: str, interval_ms=None):
        self.id = next(_handle_ids)
        self.name = name
        self.interval_ms = interval_ms
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self):
        return f"<TimerHandle {self.id} {self.name} cancelled={self.cancelled}>"


class Scheduler:
    """Runs deferred and recurring callbacks as Socket.IO background tasks.

    Every callback runs while holding ``lock``. Inbound events, disconnects
    and admin calls take the same lock, which gives the core one serialized
    run loop whatever async mode Socket.IO is using. The lock is re-entrant
    because a timer callback may switch activity, which takes it again.
    """

    def __init__(self, socketio):
        self.socketio = socketio
        self.lock = threading.RLock()

    def now_ms(self) -> float:
        return time.time() * 1000.0

    def call_later(self, delay_ms, callback, *args) -> TimerHandle:
        handle = TimerHandle(getattr(callback, '__name__', 'callback'))
        logger.debug(f"[timer-set] id={handle.id} name={handle.name} delay={delay_ms}ms")
        self.socketio.start_background_task(self._run_later, handle, delay_ms, callback, args)
        return handle

    def call_every(self, interval_ms, callback, *args) -> TimerHandle:
        handle = TimerHandle(getattr(callback, '__name__', 'callback'), interval_ms=interval_ms)
        logger.debug(f"[timer-set] id={handle.id} name={handle.name} every={interval_ms}ms")
        self.socketio.start_background_task(self._run_every, handle, interval_ms, callback, args)
        return handle

    def _run_later(self, handle, delay_ms, callback, args):
        self.socketio.sleep(max(0.0, delay_ms) / 1000.0)
        with self.lock:
            if handle.cancelled:
                logger.debug(f"[timer-abort] id={handle.id} name={handle.name} cancelled")
                return
            handle.fired = True
            self._invoke(handle, callback, args)

    def _run_every(self, handle, interval_ms, callback, args):
        while True:
            self.socketio.sleep(max(1.0, interval_ms) / 1000.0)
            with self.lock:
                if handle.cancelled:
                    logger.debug(f"[timer-abort] id={handle.id} name={handle.name} cancelled")
                    return
                self._invoke(handle, callback, args)

    def _invoke(self, handle, callback, args):
        try:
            callback(*args)
        except Exception:
            # A failing callback only loses its own tick
            logger.exception(f"[timer-error] id={handle.id} name={handle.name}")
