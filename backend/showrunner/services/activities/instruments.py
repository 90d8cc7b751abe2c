import logging
from typing import Dict, List

from .base import ActivityVariant, Phase

logger = logging.getLogger(__name__)

INSTRUMENTS = (
    {'id': 'drums', 'name': 'Drums', 'hint': 'Big arm hits', 'tool': 'Drumsticks', 'color': '#ef4444'},
    {'id': 'maracas', 'name': 'Maracas', 'hint': 'Shake', 'tool': 'Maracas', 'color': '#f59e0b'},
    {'id': 'guitar', 'name': 'Guitar', 'hint': 'Strum', 'tool': 'Guitar pick', 'color': '#22d3ee'},
    {'id': 'violin', 'name': 'Violin', 'hint': 'Bow', 'tool': 'Violin bow', 'color': '#a855f7'},
)
ENERGY_CAP = 1.5
ENERGY_GAIN = 0.08
DECAY = 0.85
ENERGY_TICK_MS = 700
SPOTLIGHT_FIRST_MS = 4000
SPOTLIGHT_STAGGER_MS = 4500
SPOTLIGHT_DURATION_MS = 4000


class Instruments(ActivityVariant):
    """Finale jam: showcase each instrument, then everyone plays one."""

    NAME = 'instruments'
    EVENT_HANDLERS = {
        'instrument_motion': '_on_motion',
    }

    def build_timeline(self) -> List[Phase]:
        return [
            Phase('demo', len(INSTRUMENTS) * self.demo_step_ms + 200, 'finale', '_enter_demo'),
            Phase('finale', self.finale_ms, None, '_enter_finale'),
        ]

    @property
    def demo_step_ms(self) -> int:
        return self.setting('INSTRUMENTS_DEMO_STEP_MS', 8000)

    @property
    def finale_ms(self) -> int:
        return self.setting('INSTRUMENTS_FINALE_MS', 20000)

    def reset(self):
        self.assignments: Dict[str, str] = {}
        self.total_energy = 0.0
        self.instrument_energy: Dict[str, float] = {i['id']: 0.0 for i in INSTRUMENTS}

    # Phases
    def _enter_demo(self):
        self.broadcast({'type': 'instruments_phase', 'phase': 'demo'})
        for idx, instrument in enumerate(INSTRUMENTS):
            if idx == 0:
                self._demo_step(instrument)
            else:
                self.schedule(idx * self.demo_step_ms, self._demo_step, instrument)

    def _demo_step(self, instrument):
        self.broadcast({'type': 'instruments_demo_step', 'instrument': instrument, 'durationMs': self.demo_step_ms})
        # Everyone holds the showcased tool during the demo
        self.broadcast({'type': 'instruments_assignment', 'instrument': instrument['id']})

    def _enter_finale(self):
        self.assign_instruments()
        self.broadcast({'type': 'instruments_phase', 'phase': 'finale'})
        self.broadcast({'type': 'instruments_finale_start', 'durationMs': self.finale_ms})
        self.repeat(ENERGY_TICK_MS, self._energy_tick)
        for idx, instrument in enumerate(INSTRUMENTS):
            self.schedule(SPOTLIGHT_FIRST_MS + idx * SPOTLIGHT_STAGGER_MS, self._spotlight, instrument['id'], True)

    # Events
    def _on_motion(self, sid, event):
        if self.phase != 'finale':
            return
        instrument = self.assignments.get(sid)
        if instrument is None:
            return
        try:
            magnitude = float(event.get('magnitude') or 0)
        except (TypeError, ValueError):
            return
        self.record_energy(magnitude, instrument)

    def on_player_disconnect(self, sid):
        if self.assignments.pop(sid, None) is not None:
            logger.info(f"[instruments] sid={sid} left, assignment released")

    # Energy
    def record_energy(self, magnitude: float, instrument: str) -> None:
        gain = min(1.0, max(0.0, magnitude / 6)) * ENERGY_GAIN
        self.total_energy = min(ENERGY_CAP, self.total_energy + gain)
        self.instrument_energy[instrument] = min(ENERGY_CAP, self.instrument_energy.get(instrument, 0.0) + gain)

    def decay_energy(self) -> None:
        self.total_energy = max(0.0, self.total_energy * DECAY)
        for key in self.instrument_energy:
            self.instrument_energy[key] = max(0.0, self.instrument_energy[key] * DECAY)

    def _energy_tick(self):
        self.decay_energy()
        self.broadcast({
            'type': 'instruments_energy',
            'level': min(1.0, self.total_energy),
            'instrumentLevels': dict(self.instrument_energy),
        })

    # Assignments and spotlights
    def assign_instruments(self):
        for idx, player in enumerate(self.state.client_players()):
            instrument = INSTRUMENTS[idx % len(INSTRUMENTS)]['id']
            self.assignments[player.id] = instrument
            self.send_to(player.id, {'type': 'instruments_assignment', 'instrument': instrument})
        logger.info(f"[instruments] assigned {len(self.assignments)} players")

    def _spotlight(self, instrument_id, active):
        self.broadcast({
            'type': 'instruments_spotlight',
            'instrument': instrument_id,
            'active': active,
            'durationMs': SPOTLIGHT_DURATION_MS if active else 0,
        })
        if active:
            self.schedule(SPOTLIGHT_DURATION_MS, self._spotlight, instrument_id, False)
