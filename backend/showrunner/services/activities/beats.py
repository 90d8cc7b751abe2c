import logging
from typing import Any, Dict, List

from showrunner.services import scoring

from .base import ActivityVariant, Phase

logger = logging.getLogger(__name__)

# (bpm, beat-on ms, beat-off ms) for each round, getting faster
ROUNDS = (
    (96, 10000, 5000),
    (116, 5000, 10000),
    (136, 5000, 10000),
)
SYNC_INTERVAL_MS = 100
NO_MVP = {'playerId': '', 'nickname': 'No MVP', 'accuracy': 0}


class Beats(ActivityVariant):
    """Tap-along rhythm game played by groups over three rounds."""

    NAME = 'beats'
    EVENT_HANDLERS = {
        'tap': '_on_tap',
    }
    TAPPING_PHASES = ('beat_on', 'beat_off')

    def build_timeline(self) -> List[Phase]:
        timeline = [
            Phase('instructions', self.setting('BEATS_INSTRUCTIONS_MS', 38000), 'beat_on_1',
                  '_enter_instructions', {'bpm': ROUNDS[0][0]}),
        ]
        for idx, (bpm, on_ms, off_ms) in enumerate(ROUNDS, start=1):
            last = idx == len(ROUNDS)
            params = {'round_no': idx, 'bpm': bpm}
            timeline.append(Phase(f'beat_on_{idx}', on_ms, f'beat_off_{idx}', '_enter_beat_on', params))
            timeline.append(Phase(f'beat_off_{idx}', off_ms, 'results' if last else f'beat_on_{idx + 1}',
                                  '_enter_beat_off', params))
        timeline.append(Phase('results', self.setting('BEATS_RESULTS_MS', 10000), None, '_enter_results'))
        return timeline

    def reset(self):
        self.taps: List[Dict[str, Any]] = []
        self.current_round = 0
        self.current_bpm = ROUNDS[0][0]
        self.round_start = 0.0
        self.stage = None
        self.last_results = None

    # Phases
    def _enter_instructions(self, bpm):
        self.stage = 'instructions'
        self.broadcast({'type': 'beat_phase_change', 'phase': 'instructions', 'round': 0, 'bpm': bpm})

    def _enter_beat_on(self, round_no, bpm):
        self.stage = 'beat_on'
        self.current_round = round_no
        self.current_bpm = bpm
        self.round_start = self.scheduler.now_ms()
        self.broadcast({'type': 'beat_phase_change', 'phase': 'beat_on', 'round': round_no, 'bpm': bpm})

    def _enter_beat_off(self, round_no, bpm):
        self.stage = 'beat_off'
        self.broadcast({'type': 'beat_phase_change', 'phase': 'beat_off', 'round': round_no, 'bpm': bpm})
        self.repeat(SYNC_INTERVAL_MS, self._push_sync_update)

    def _enter_results(self):
        self.stage = 'results'
        self.last_results = self.compute_results()
        self.broadcast({'type': 'beat_results', **self.last_results})
        winner = self.last_results['winner']
        mvp = self.last_results['mvp']
        logger.info(f"[beats] winner={winner} mvp={mvp['nickname']} accuracy={round(mvp['accuracy'] * 100)}%")

    # Events
    def _on_tap(self, sid, event):
        if self.stage not in self.TAPPING_PHASES:
            return
        player = self.state.get_player(sid)
        if not player or not player.group_id:
            return
        timestamp = event.get('timestamp')
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            timestamp = self.scheduler.now_ms()
        self.taps.append({
            'player_id': sid,
            'group_id': player.group_id,
            'timestamp': float(timestamp),
            'round': self.current_round,
            'round_start': self.round_start,
            'bpm': self.current_bpm,
        })
        logger.debug(f"[beats] tap sid={sid} group={player.group_id} round={self.current_round}")

    def on_player_disconnect(self, sid):
        before = len(self.taps)
        self.taps = [t for t in self.taps if t['player_id'] != sid]
        logger.info(f"[beats] sid={sid} left, dropped {before - len(self.taps)} taps")

    # Scoring
    def group_accuracies(self):
        return scoring.group_accuracies(self.taps, self.state.group_labels)

    def player_stats(self):
        stats = []
        for entry in scoring.player_accuracies(self.taps):
            player = self.state.get_player(entry['playerId'])
            if not player:
                continue
            stats.append({**entry, 'nickname': player.nickname, 'groupId': player.group_id})
        return stats

    def compute_results(self) -> Dict[str, Any]:
        groups = self.group_accuracies()
        winner = scoring.first_max(groups)
        mvp = scoring.first_max(self.player_stats())
        return {
            'winner': winner['groupId'] if winner else None,
            'groupAccuracies': groups,
            'mvp': {
                'playerId': mvp['playerId'],
                'nickname': mvp['nickname'],
                'accuracy': mvp['accuracy'],
            } if mvp else dict(NO_MVP),
        }

    def _push_sync_update(self):
        self.broadcast({'type': 'beat_team_sync_update', 'groupAccuracies': self.group_accuracies()})
