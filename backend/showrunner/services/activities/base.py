import logging
import random
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union

from showrunner.state import LOBBY, Player

logger = logging.getLogger(__name__)

Duration = Union[int, Callable[[], int], None]


class Phase(NamedTuple):
    """One row of a variant's timeline.

    ``duration_ms`` is an int, a callable evaluated on entry, or None to
    hold the phase until an event moves it on. ``next`` is the key of the
    following phase; None returns to the lobby.
    """
    key: str
    duration_ms: Duration
    next: Optional[str]
    enter: str
    params: Optional[Dict[str, Any]] = None


def reading_duration_ms(text: str) -> int:
    words = len(text.split())
    return max(3000, round(words / 150 * 60000))


class ActivityVariant:
    """Contract shared by every activity, plus the phase-timeline runner.

    Subclasses fill in ``NAME``, ``EVENT_HANDLERS`` (type tag -> method
    name), ``build_timeline()`` and ``reset()``. Every timer a variant
    creates goes through ``schedule``/``repeat`` so that entering a new
    phase or ending the activity can cancel all of them.
    """

    NAME = 'activity'
    EVENT_HANDLERS: Dict[str, str] = {}
    COMMON_HANDLERS = {
        'register': '_on_register',
        'request_state': '_on_request_state',
        'reaction': '_on_reaction',
    }

    def __init__(self, state, transport, scheduler, switch_activity=None, settings=None, rng=None):
        self.state = state
        self.transport = transport
        self.scheduler = scheduler
        self._switch_activity = switch_activity
        self.settings = settings or {}
        self.rng = rng or random.Random()
        self.active = False
        self.phase: Optional[str] = None
        self.phase_started_at = 0.0
        self._run_id = 0
        self._timers: List[Any] = []
        self._handlers = {**self.COMMON_HANDLERS, **self.EVENT_HANDLERS}
        self.timeline: List[Phase] = self.build_timeline()
        self._phases = {p.key: p for p in self.timeline}
        self.reset()

    def setting(self, key: str, default: int) -> int:
        return int(self.settings.get(key, default))

    # Hooks for subclasses
    def build_timeline(self) -> List[Phase]:
        return []

    def reset(self) -> None:
        """Clear every ephemeral entity back to its default."""

    # Lifecycle
    def on_activity_start(self) -> None:
        self._run_id += 1
        self.cancel_timers()
        self.reset()
        self.active = True
        self.phase = None
        logger.info(f"[activity] start name={self.NAME} run={self._run_id}")
        if self.timeline:
            self.enter_phase(self.timeline[0].key)

    def on_activity_end(self) -> None:
        self.active = False
        self.cancel_timers()
        self.reset()
        self.phase = None
        logger.info(f"[activity] end name={self.NAME} run={self._run_id}")

    def on_player_disconnect(self, sid: str) -> None:
        """Drop per-player tracking; the timeline is untouched."""

    def handle_client_event(self, sid: str, event: Dict[str, Any]) -> None:
        event_type = event.get('type')
        method = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if method is None:
            logger.debug(f"[{self.NAME}] ignoring event type={event_type!r} sid={sid}")
            return
        getattr(self, method)(sid, event)

    @property
    def accepted_events(self):
        return frozenset(self._handlers)

    # Timeline
    def enter_phase(self, key: str) -> None:
        phase = self._phases[key]
        self.cancel_timers()
        self.phase = key
        self.phase_started_at = self.scheduler.now_ms()
        logger.info(f"[phase] activity={self.NAME} phase={key}")
        getattr(self, phase.enter)(**(phase.params or {}))
        # The entry handler may already have moved on or ended the activity
        if not self.active or self.phase != key:
            return
        duration = phase.duration_ms() if callable(phase.duration_ms) else phase.duration_ms
        if duration is None:
            return
        self.schedule(duration, self._advance_from, key)

    def _advance_from(self, key: str) -> None:
        following = self._phases[key].next
        if following is None:
            self.finish()
        else:
            self.enter_phase(following)

    def finish(self) -> None:
        """Hand control back to the lobby through the router."""
        logger.info(f"[activity] finished name={self.NAME} returning to {LOBBY}")
        if self._switch_activity is not None:
            self._switch_activity(LOBBY)
        else:
            self.on_activity_end()
            self.state.set_activity(LOBBY)

    # Timers
    def _guard(self, callback, args):
        run_id = self._run_id

        def fire():
            if not self.active or run_id != self._run_id:
                logger.info(f"[timer-abort] activity={self.NAME} run={run_id} current={self._run_id}")
                return
            callback(*args)
        fire.__name__ = f"{self.NAME}.{getattr(callback, '__name__', 'callback')}"
        return fire

    def schedule(self, delay_ms, callback, *args):
        handle = self.scheduler.call_later(delay_ms, self._guard(callback, args))
        self._timers.append(handle)
        return handle

    def repeat(self, interval_ms, callback, *args):
        handle = self.scheduler.call_every(interval_ms, self._guard(callback, args))
        self._timers.append(handle)
        return handle

    def cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers = []

    def run_instruction_slides(self, event_type: str, phase: str, slides: List[str]) -> None:
        """Broadcast each slide once the previous ones have had time to be read."""
        delay = 0
        for idx, text in enumerate(slides):
            payload = {
                'type': event_type,
                'phase': phase,
                'slide': idx + 1,
                'totalSlides': len(slides),
                'text': text,
                'durationMs': reading_duration_ms(text),
            }
            if idx == 0:
                self.broadcast(payload)
            else:
                self.schedule(delay, self.broadcast, payload)
            delay += reading_duration_ms(text)

    @staticmethod
    def slides_duration_ms(slides: List[str]) -> int:
        return sum(reading_duration_ms(text) for text in slides) + 500

    # Messaging
    def broadcast(self, event: Dict[str, Any]) -> None:
        self.transport.broadcast(event)

    def send_to(self, sid: str, event: Dict[str, Any]) -> None:
        self.transport.send_to(sid, event)

    # Events every activity accepts
    def _on_register(self, sid: str, event: Dict[str, Any]) -> None:
        role = event.get('role') if event.get('role') in ('client', 'entertainer') else 'client'
        existing = self.state.get_player(sid)
        if existing and existing.role == role:
            group_id = existing.group_id
        else:
            group_id = self.state.assign_group() if role == 'client' else None
        player = Player(
            id=sid,
            nickname=event.get('nickname') or f"Player-{sid[:4]}",
            role=role,
            group_id=group_id,
        )
        self.state.add_player(player)

    def _on_request_state(self, sid: str, event: Dict[str, Any]) -> None:
        self.state.broadcast_state()

    def _on_reaction(self, sid: str, event: Dict[str, Any]) -> None:
        self.broadcast({
            'type': 'reaction',
            'emoji': event.get('emoji'),
            'playerId': sid,
            'timestamp': int(self.scheduler.now_ms()),
        })
