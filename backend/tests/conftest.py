import os
import random
import sys
import threading
from itertools import count

import pytest

# Ensure the backend root (containing the `showrunner` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from showrunner import create_app, socketio
from showrunner.router import ActivityRouter
from showrunner.sessions import SessionGate
from showrunner.state import StateStore, Player


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    ENABLE_CONSOLE = 0
    SOCKETIO_ASYNC_MODE = 'threading'


class FakeTransport:
    """Records everything the core sends instead of emitting it."""

    def __init__(self):
        self.broadcasts = []
        self.sent = []
        self.notices = []
        self.disconnected = []
        self.on_disconnect = None

    def broadcast(self, event):
        self.broadcasts.append(event)

    def send_to(self, sid, event):
        self.sent.append((sid, event))

    def notify(self, sid, name, payload):
        self.notices.append((sid, name, payload))

    def disconnect(self, sid):
        self.disconnected.append(sid)
        if self.on_disconnect:
            self.on_disconnect(sid)

    def types(self):
        return [e['type'] for e in self.broadcasts]

    def of_type(self, event_type):
        return [e for e in self.broadcasts if e['type'] == event_type]

    def sent_to(self, sid, event_type=None):
        return [e for s, e in self.sent if s == sid and (event_type is None or e['type'] == event_type)]

    def clear(self):
        self.broadcasts.clear()
        self.sent.clear()
        self.notices.clear()
        self.disconnected.clear()


class FakeTimer:
    def __init__(self, seq, due, callback, args, interval=None):
        self.seq = seq
        self.due = due
        self.callback = callback
        self.args = args
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock: nothing fires until ``advance`` moves time forward."""

    def __init__(self, start_ms=1_000_000.0):
        self.now = start_ms
        self.lock = threading.RLock()
        self._timers = []
        self._seq = count()

    def now_ms(self):
        return self.now

    def call_later(self, delay_ms, callback, *args):
        timer = FakeTimer(next(self._seq), self.now + delay_ms, callback, args)
        self._timers.append(timer)
        return timer

    def call_every(self, interval_ms, callback, *args):
        timer = FakeTimer(next(self._seq), self.now + interval_ms, callback, args, interval=interval_ms)
        self._timers.append(timer)
        return timer

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = timer.due
            if timer.interval:
                timer.due += timer.interval
            else:
                self._timers.remove(timer)
            timer.callback(*timer.args)
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]

    @property
    def pending(self):
        return [t for t in self._timers if not t.cancelled]


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def scheduler():
    return FakeScheduler()


@pytest.fixture()
def state(transport):
    return StateStore(transport)


@pytest.fixture()
def gate(transport):
    return SessionGate(transport, rng=random.Random(7))


@pytest.fixture()
def router(state, transport, scheduler, gate):
    return ActivityRouter(state, transport, scheduler, session_gate=gate, rng=random.Random(42))


@pytest.fixture()
def add_client(state):
    """Register a client player straight into the store."""
    def _add(sid, nickname=None, role='client'):
        player = Player(
            id=sid,
            nickname=nickname or sid,
            role=role,
            group_id=state.assign_group() if role == 'client' else None,
        )
        state.add_player(player)
        return player
    return _add


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig, scheduler=FakeScheduler())
    with application.app_context():
        yield application


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['showrunner']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    if test_client.is_connected():
        test_client.disconnect()
