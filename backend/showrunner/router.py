import logging
from typing import Any

from showrunner.services.activities import (
    ARHunt,
    Beats,
    Energizer,
    Instruments,
    Lobby,
)
from showrunner.state import ACTIVITY_IDS, LOBBY

logger = logging.getLogger(__name__)

REGISTER = 'register'


class ActivityRouter:
    """Dispatches inbound events to the active variant and owns activity switches.

    Public entry points take the scheduler's run-loop lock, so a switch
    (end old variant, set activity, start new variant) is never observed
    half-done by an event or a timer.
    """

    def __init__(self, state, transport, scheduler, session_gate=None, settings=None, rng=None):
        self.state = state
        self.transport = transport
        self.scheduler = scheduler
        self.session_gate = session_gate
        common = dict(
            state=state,
            transport=transport,
            scheduler=scheduler,
            switch_activity=self.switch_activity,
            settings=settings,
            rng=rng,
        )
        self.activities = {
            'start': Lobby(**common),
            'lobby': Lobby(**common),
            'beats': Beats(**common),
            'ar': ARHunt(**common),
            'energizer': Energizer(**common),
            'instruments': Instruments(**common),
        }

    @property
    def lock(self):
        return self.scheduler.lock

    def get_activity_manager(self, activity: str):
        return self.activities.get(activity)

    def handle_client_event(self, sid: str, event: Any) -> None:
        if not isinstance(event, dict) or not isinstance(event.get('type'), str) or not event['type']:
            logger.debug(f"[router] dropping malformed event sid={sid}")
            return
        with self.lock:
            if event['type'] == REGISTER:
                if self.session_gate is not None and not self.session_gate.validate_and_register(
                    sid, event.get('sessionId'), event.get('deviceId')
                ):
                    self._reject(sid, 'session_invalid', 'Invalid or expired session code')
                    self.transport.disconnect(sid)
                    return
            elif self.session_gate is not None and not self.session_gate.is_socket_registered(sid):
                self._reject(sid, 'not_registered', 'Register with a session code first')
                return

            current = self.state.get_activity()
            manager = self.activities.get(current)
            if manager is None:
                logger.warning(f"[router] no manager for activity={current}; dropping {event['type']}")
                return
            manager.handle_client_event(sid, event)

    def switch_activity(self, new_activity: str) -> None:
        if new_activity not in ACTIVITY_IDS:
            raise ValueError(f"Unknown activity: {new_activity}")
        with self.lock:
            current = self.state.get_activity()
            logger.info(f"[router] switch {current} -> {new_activity}")
            current_manager = self.activities.get(current)
            if current_manager is not None:
                current_manager.on_activity_end()
            self.state.set_activity(new_activity)
            new_manager = self.activities.get(new_activity)
            if new_manager is not None:
                new_manager.on_activity_start()

    def reset(self) -> None:
        """End whatever is running, clear the roster and start the lobby."""
        with self.lock:
            current_manager = self.activities.get(self.state.get_activity())
            if current_manager is not None:
                current_manager.on_activity_end()
            self.state.reset()
            lobby = self.activities.get(LOBBY)
            if lobby is not None:
                lobby.on_activity_start()

    def handle_disconnect(self, sid: str) -> None:
        with self.lock:
            manager = self.activities.get(self.state.get_activity())
            # The variant sees the player before it leaves the roster
            if manager is not None:
                manager.on_player_disconnect(sid)
            self.state.remove_player(sid)
            if self.session_gate is not None:
                self.session_gate.handle_disconnect(sid)

    def _reject(self, sid: str, code: str, message: str) -> None:
        logger.info(f"[router] rejected sid={sid} code={code}")
        self.transport.send_to(sid, {'type': 'error', 'code': code, 'message': message})
