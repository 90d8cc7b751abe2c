from showrunner.router import ActivityRouter
from showrunner.sessions import SessionGate
from showrunner.state import StateStore


class Showrunner:
    """Explicit wiring of the core: state store, session gate and router.

    Built once per app and handed to the socket handlers, the admin API and
    the console; nothing in the core reaches for a module-level instance.
    """

    def __init__(self, transport, scheduler, settings=None, rng=None):
        settings = settings or {}
        self.transport = transport
        self.scheduler = scheduler
        self.state = StateStore(transport)
        self.sessions = SessionGate(transport, code_length=int(settings.get('SESSION_CODE_LENGTH', 8)))
        self.router = ActivityRouter(
            self.state,
            transport,
            scheduler,
            session_gate=self.sessions,
            settings=settings,
            rng=rng,
        )

    @property
    def lock(self):
        return self.scheduler.lock

    def create_session(self):
        with self.lock:
            session = self.sessions.create_session()
            self.router.reset()
            return session

    def end_session(self):
        with self.lock:
            self.sessions.end_session()
            self.router.reset()
