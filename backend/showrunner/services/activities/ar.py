import logging
import math
import uuid
from typing import Any, Dict, List, Optional, Set

from .base import ActivityVariant, Phase

logger = logging.getLogger(__name__)

INSTRUCTION_SLIDES = (
    "[AR] Dressing Room Challenge",
    "[AR] Use your phone camera to find and collect items around you.",
    "[AR] Point your camera at the screen to calibrate your device.",
)
SMALL_ITEMS_COUNT = 1
BOSS_SCALE = 3.0
BOSS_POSITION = {'x': 0, 'y': 1.5, 'z': -3}


class ARHunt(ActivityVariant):
    """Augmented-reality item hunt ending in a shared boss fight.

    Small items are collected until every anchored player has reached the
    per-player floor; then a single boss replaces them and everyone taps it
    down to zero health.
    """

    NAME = 'ar'
    EVENT_HANDLERS = {
        'anchor_success': '_on_anchor_success',
        'tap_item': '_on_tap_item',
    }

    def build_timeline(self) -> List[Phase]:
        return [
            Phase('instructions', lambda: self.slides_duration_ms(list(INSTRUCTION_SLIDES)), 'anchoring',
                  '_enter_instructions'),
            Phase('anchoring', self.setting('AR_ANCHORING_MS', 10000), 'hunting', '_enter_anchoring'),
            Phase('hunting', None, None, '_enter_hunting'),
            Phase('boss', None, None, '_enter_boss'),
            Phase('results', self.setting('AR_RESULTS_MS', 10000), None, '_enter_results'),
        ]

    @property
    def taps_per_player(self) -> int:
        return self.setting('AR_TAPS_PER_PLAYER', 10)

    @property
    def boss_max_health(self) -> int:
        return self.setting('AR_BOSS_MAX_HEALTH', 30)

    def reset(self):
        self.anchored_players: Set[str] = set()
        self.items: List[Dict[str, Any]] = []
        self.total_taps = 0
        self.player_taps: Dict[str, int] = {}
        self.boss_health = 0
        self.boss_spawned = False
        self.calibration: Optional[Dict[str, float]] = None

    def taps_needed(self) -> int:
        return len(self.anchored_players) * self.taps_per_player

    # Phases
    def _enter_instructions(self):
        self.broadcast({'type': 'ar_phase_change', 'phase': 'instructions'})
        self.run_instruction_slides('ar_instruction', 'instructions', list(INSTRUCTION_SLIDES))

    def _enter_anchoring(self):
        self.broadcast({'type': 'ar_phase_change', 'phase': 'anchoring'})

    def _enter_hunting(self):
        self.spawn_small_items()
        self.broadcast({'type': 'ar_phase_change', 'phase': 'hunting'})
        # Lets the entertainer screen show the target before the first tap
        self.broadcast({
            'type': 'ar_item_collected',
            'itemId': '',
            'tapCount': 0,
            'tapsNeeded': self.taps_needed(),
        })
        logger.info(f"[ar] hunting anchored={len(self.anchored_players)} taps_needed={self.taps_needed()}")

    def _enter_boss(self):
        self.boss_spawned = True
        self.boss_health = self.boss_max_health
        self.items = [{
            'id': f"boss-{uuid.uuid4().hex[:8]}",
            'type': 'boss',
            'position': dict(BOSS_POSITION),
            'scale': BOSS_SCALE,
            'health': self.boss_max_health,
        }]
        self.broadcast({'type': 'ar_phase_change', 'phase': 'boss'})
        self.broadcast({'type': 'ar_items_update', 'items': self.items})
        self._broadcast_boss_health()
        logger.info("[ar] boss spawned")

    def _enter_results(self):
        self.items = []
        self.broadcast({'type': 'ar_phase_change', 'phase': 'results'})
        self.broadcast({'type': 'ar_items_update', 'items': self.items})
        self.broadcast({
            'type': 'ar_results',
            'totalTaps': self.total_taps,
            'participatingPlayers': len(self.anchored_players),
        })
        logger.info(f"[ar] complete total_taps={self.total_taps} players={len(self.anchored_players)}")

    # Events
    def _on_anchor_success(self, sid, event):
        if self.phase == 'results':
            return
        self.anchored_players.add(sid)
        if self.calibration is None:
            self.calibration = {'alpha': event.get('alpha'), 'beta': event.get('beta')}
            logger.info(f"[ar] calibration set alpha={event.get('alpha')} beta={event.get('beta')}")
        self.send_to(sid, {'type': 'ar_calibration', **self.calibration})
        logger.info(f"[ar] anchored sid={sid} total={len(self.anchored_players)}")

    def _on_tap_item(self, sid, event):
        if sid not in self.anchored_players:
            logger.debug(f"[ar] tap from non-anchored sid={sid}")
            return
        if self.phase not in ('hunting', 'boss'):
            return
        item = next((i for i in self.items if i['id'] == event.get('itemId')), None)
        if item is None:
            return
        if item['type'] == 'small':
            self._collect_small_item(sid, item)
        elif item['type'] == 'boss':
            self._hit_boss()

    def on_player_disconnect(self, sid):
        was_anchored = sid in self.anchored_players
        self.anchored_players.discard(sid)
        self.player_taps.pop(sid, None)
        logger.info(f"[ar] sid={sid} left (was anchored: {was_anchored})")

    # Items
    def random_position(self) -> Dict[str, float]:
        """A point in the half-ring in front of the marker."""
        radius = 2 + self.rng.random() * 3
        angle = self.rng.random() * math.pi - math.pi / 2
        height = 0.5 + self.rng.random() * 1.5
        return {
            'x': radius * math.cos(angle),
            'y': height,
            'z': radius * math.sin(angle),
        }

    def spawn_small_items(self):
        self.items = [
            {
                'id': f"item-{uuid.uuid4().hex[:8]}",
                'type': 'small',
                'position': self.random_position(),
                'scale': 1.0,
            }
            for _ in range(SMALL_ITEMS_COUNT)
        ]
        self.broadcast({'type': 'ar_items_update', 'items': self.items})

    def everyone_reached_floor(self) -> bool:
        if not self.anchored_players:
            return False
        return all(self.player_taps.get(pid, 0) >= self.taps_per_player for pid in self.anchored_players)

    def _collect_small_item(self, sid, item):
        self.total_taps += 1
        self.player_taps[sid] = self.player_taps.get(sid, 0) + 1
        self.broadcast({
            'type': 'ar_item_collected',
            'itemId': item['id'],
            'tapCount': self.total_taps,
            'tapsNeeded': self.taps_needed(),
        })
        if not self.boss_spawned and self.phase == 'hunting' and self.everyone_reached_floor():
            self.enter_phase('boss')
            return
        item['id'] = f"item-{uuid.uuid4().hex[:8]}"
        item['position'] = self.random_position()
        self.broadcast({'type': 'ar_items_update', 'items': self.items})

    def _hit_boss(self):
        self.boss_health = max(0, self.boss_health - 1)
        self._broadcast_boss_health()
        if self.boss_health == 0:
            self.enter_phase('results')

    def _broadcast_boss_health(self):
        self.broadcast({'type': 'ar_boss_health', 'health': self.boss_health, 'maxHealth': self.boss_max_health})
