import logging
from typing import Any, Dict, List, Optional

from showrunner.services import scoring

from .base import ActivityVariant, Phase

logger = logging.getLogger(__name__)

INSTRUCTION_SLIDES_1 = (
    "Energizer challenge",
    "The artist will soon come out, but the stage has run out of energy.",
    "In order to recharge the energy and get the lights working again, we need your help.",
    "Please click \"accept movement\" on your phones and when the music starts dance and move as much as you can.",
    "Dance with each other, be considerate, and you will help charge the stage!",
)
INSTRUCTION_SLIDES_2 = (
    "Great, we have enough energy to set the light show, but we need your help to lock it down.",
    "We will show the pattern on screen, memorize the placement and the color and copy it on your phones.",
)

PALETTE = ('#ff63c3', '#ffa347', '#44a0ff', '#3ed17a')
GRID_ROWS = 2
GRID_COLS = 4
PATTERN_SIZE = 5
INITIAL_DISPLAY_MS = 5000
DISPLAY_GROWTH = 1.5
MAX_ATTEMPTS = 2

ACTIVE_MAGNITUDE = 1.2
IDLE_AFTER_MS = 2000
CHARGE_RATE = 0.004
SPOTLIGHT_BOOST = 1.5
UPDATE_INTERVAL_MS = 750

SPOTLIGHT_COUNT = 2
SPOTLIGHT_DURATION_MS = 10000
SPOTLIGHT_WINDOW = (10000, 50000)
SPOTLIGHT_GAP_MS = 2000

LED_STEPS = 8
LED_STEP_MS = 200


def pick_spotlight_starts(rng, count=SPOTLIGHT_COUNT, window=SPOTLIGHT_WINDOW,
                          duration_ms=SPOTLIGHT_DURATION_MS, gap_ms=SPOTLIGHT_GAP_MS) -> List[int]:
    """Random, non-overlapping spotlight start offsets inside ``window``."""
    start, end = window
    span = end - start - duration_ms
    if span <= 0:
        return []
    # Cap so a free slot always remains for the next pick
    count = min(count, 1 + span // (2 * (duration_ms + gap_ms)))
    starts: List[int] = []
    while len(starts) < count:
        candidate = start + int(rng.random() * span)
        if all(abs(candidate - other) >= duration_ms + gap_ms for other in starts):
            starts.append(candidate)
    return sorted(starts)


class Energizer(ActivityVariant):
    """Move to charge the stage, send the energy, then copy a light pattern."""

    NAME = 'energizer'
    EVENT_HANDLERS = {
        'energizer_motion': '_on_motion',
        'energizer_swipe_send': '_on_swipe_send',
        'energizer_sequence_submit': '_on_sequence_submit',
    }

    def build_timeline(self) -> List[Phase]:
        return [
            Phase('instructions1', lambda: self.slides_duration_ms(list(INSTRUCTION_SLIDES_1)), 'movement',
                  '_enter_instructions', {'phase': 'instructions1', 'slides': INSTRUCTION_SLIDES_1}),
            Phase('movement', self.setting('ENERGIZER_MOVEMENT_MS', 60000), 'send_energy', '_enter_movement'),
            Phase('send_energy', self.setting('ENERGIZER_SEND_MS', 12000), 'instructions2', '_enter_send_energy'),
            Phase('instructions2', lambda: self.slides_duration_ms(list(INSTRUCTION_SLIDES_2)), 'sequence_show',
                  '_enter_instructions', {'phase': 'instructions2', 'slides': INSTRUCTION_SLIDES_2}),
            Phase('sequence_show', lambda: self.display_ms, 'sequence_input', '_enter_sequence_show'),
            Phase('sequence_input', self.setting('ENERGIZER_INPUT_WINDOW_MS', 20000), 'judging',
                  '_enter_sequence_input'),
            Phase('judging', None, None, '_enter_judging'),
            Phase('results', self.setting('ENERGIZER_RESULTS_MS', 5000), None, '_enter_results'),
        ]

    def reset(self):
        self.player_charge: Dict[str, float] = {}
        self.last_motion: Dict[str, float] = {}
        self.last_active: Dict[str, float] = {}
        self.spotlight_active = False
        self.current_pattern: Optional[Dict[str, Any]] = None
        self.allow_input = False
        self.submissions: Dict[str, List[Dict[str, Any]]] = {}
        self.display_ms = INITIAL_DISPLAY_MS
        self.attempts = 0
        self.succeeded = False

    # Phases
    def _enter_instructions(self, phase, slides):
        self.broadcast({'type': 'energizer_phase_change', 'phase': phase})
        self.run_instruction_slides('energizer_instruction', phase, list(slides))

    def _enter_movement(self):
        duration = self.setting('ENERGIZER_MOVEMENT_MS', 60000)
        self.broadcast({'type': 'energizer_phase_change', 'phase': 'movement', 'durationMs': duration})
        for offset in pick_spotlight_starts(self.rng, window=(SPOTLIGHT_WINDOW[0], min(SPOTLIGHT_WINDOW[1], duration))):
            self.schedule(offset, self._spotlight_on)
        self.repeat(UPDATE_INTERVAL_MS, self._push_updates)

    def _enter_send_energy(self):
        self.spotlight_active = False
        self.broadcast({
            'type': 'energizer_phase_change',
            'phase': 'send_energy',
            'durationMs': self.setting('ENERGIZER_SEND_MS', 12000),
        })

    def _enter_sequence_show(self):
        self.allow_input = False
        self.submissions = {}
        self.attempts += 1
        self.current_pattern = self.generate_pattern(self.display_ms)
        self.broadcast({'type': 'energizer_phase_change', 'phase': 'sequence_show', 'durationMs': self.display_ms})
        self.broadcast({'type': 'energizer_sequence_show', 'pattern': self.current_pattern})
        logger.info(f"[energizer] pattern attempt={self.attempts} display={self.display_ms}ms")

    def _enter_sequence_input(self):
        self.broadcast({'type': 'energizer_sequence_hide'})
        self.broadcast({
            'type': 'energizer_phase_change',
            'phase': 'sequence_input',
            'durationMs': self.setting('ENERGIZER_INPUT_WINDOW_MS', 20000),
        })
        self.allow_input = True

    def _enter_judging(self):
        self.allow_input = False
        participants = len(self.state.client_players())
        correct = sum(
            1 for cells in self.submissions.values()
            if scoring.is_submission_correct(self.current_pattern['cells'], cells)
        )
        success = scoring.sequence_succeeded(correct, participants)
        retry = not success and self.attempts < MAX_ATTEMPTS
        next_display = round(self.display_ms * DISPLAY_GROWTH)
        self.broadcast({
            'type': 'energizer_sequence_result',
            'success': success,
            'correctCount': correct,
            'totalParticipants': participants,
            'nextDisplayMs': next_display if retry else None,
        })
        logger.info(f"[energizer] judged attempt={self.attempts} correct={correct}/{participants} success={success}")
        if success:
            self.succeeded = True
            self.broadcast(self.build_led_payload(self.current_pattern))
            self.enter_phase('results')
        elif retry:
            self.display_ms = next_display
            self.enter_phase('sequence_show')
        else:
            self.enter_phase('results')

    def _enter_results(self):
        self.broadcast({'type': 'energizer_phase_change', 'phase': 'results', 'success': self.succeeded})

    # Events
    def _on_motion(self, sid, event):
        if self.phase != 'movement':
            return
        try:
            magnitude = float(event.get('magnitude') or 0)
        except (TypeError, ValueError):
            return
        now = self.scheduler.now_ms()
        self.last_motion[sid] = now
        if magnitude >= ACTIVE_MAGNITUDE:
            self.last_active[sid] = now
        normalized = min(max(magnitude / 8, 0.0), 1.0)
        delta = CHARGE_RATE * normalized
        if self.spotlight_active:
            delta *= SPOTLIGHT_BOOST
        charge = min(1.0, self.player_charge.get(sid, 0.0) + delta)
        self.player_charge[sid] = charge
        self.send_to(sid, {'type': 'energizer_player_update', 'charge': charge, 'idle': False})

    def _on_swipe_send(self, sid, event):
        if self.phase not in ('movement', 'send_energy'):
            return
        charge = self.player_charge.get(sid, 0.0)
        self.player_charge[sid] = 0.0
        self.broadcast({'type': 'energizer_energy_sent', 'playerId': sid, 'charge': charge})
        self.send_to(sid, {'type': 'energizer_player_update', 'charge': 0.0, 'idle': False})

    def _on_sequence_submit(self, sid, event):
        if not self.allow_input:
            return
        cells = event.get('cells')
        if not isinstance(cells, list):
            return
        self.submissions[sid] = cells

    def on_player_disconnect(self, sid):
        self.player_charge.pop(sid, None)
        self.last_motion.pop(sid, None)
        self.last_active.pop(sid, None)
        self.submissions.pop(sid, None)

    # Movement helpers
    def is_idle(self, sid, now=None) -> bool:
        now = self.scheduler.now_ms() if now is None else now
        return now - self.last_active.get(sid, 0.0) > IDLE_AFTER_MS

    def _push_updates(self):
        now = self.scheduler.now_ms()
        players = []
        for sid, charge in self.player_charge.items():
            player = self.state.get_player(sid)
            if not player:
                continue
            players.append({'playerId': sid, 'nickname': player.nickname, 'charge': charge,
                            'idle': self.is_idle(sid, now)})
        players.sort(key=lambda p: p['charge'], reverse=True)
        self.broadcast({'type': 'energizer_entertainer_update', 'players': players})
        for sid, charge in self.player_charge.items():
            if self.is_idle(sid, now):
                self.send_to(sid, {'type': 'energizer_player_update', 'charge': charge, 'idle': True})

    def _spotlight_on(self):
        self.spotlight_active = True
        self.broadcast({'type': 'energizer_spotlight', 'active': True, 'durationMs': SPOTLIGHT_DURATION_MS})
        self.schedule(SPOTLIGHT_DURATION_MS, self._spotlight_off)

    def _spotlight_off(self):
        self.spotlight_active = False
        self.broadcast({'type': 'energizer_spotlight', 'active': False, 'durationMs': 0})

    # Pattern helpers
    def generate_pattern(self, display_ms: int) -> Dict[str, Any]:
        indices = self.rng.sample(range(GRID_ROWS * GRID_COLS), PATTERN_SIZE)
        return {
            'rows': GRID_ROWS,
            'cols': GRID_COLS,
            'cells': [{'index': idx, 'color': self.rng.choice(PALETTE)} for idx in indices],
            'displayMs': display_ms,
            'sequenceId': self.rng.randrange(10000),
        }

    @staticmethod
    def build_led_payload(pattern: Dict[str, Any]) -> Dict[str, Any]:
        total = pattern['rows'] * pattern['cols']
        steps = []
        for i in range(LED_STEPS):
            leds = [{'id': idx, 'color': '#000000'} for idx in range(total)]
            cell = pattern['cells'][i % len(pattern['cells'])]
            leds[cell['index']]['color'] = cell['color']
            steps.append({'time': i * LED_STEP_MS, 'leds': leds})
        return {'type': 'led_sequence', 'sequence': pattern['sequenceId'], 'pattern': steps}
