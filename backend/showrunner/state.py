import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ACTIVITY_IDS = ('start', 'lobby', 'beats', 'ar', 'energizer', 'instruments')
LOBBY = 'lobby'
GROUP_LABELS = ('A', 'B', 'C', 'D')
ROLES = ('client', 'entertainer')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Player:
    id: str
    nickname: str
    role: str = 'client'
    group_id: Optional[str] = None
    last_seen: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nickname': self.nickname,
            'role': self.role,
            'groupId': self.group_id,
            'lastSeen': self.last_seen.isoformat(),
        }


class StateStore:
    """Canonical record of the active activity and the connected roster.

    All mutation goes through the methods below. Each mutating call
    broadcasts the full snapshot and then the matching discrete event, so an
    observer never sees a change without its event.
    """

    def __init__(self, transport, group_labels=GROUP_LABELS):
        self.transport = transport
        self.group_labels = tuple(group_labels)
        self._group_index = 0
        self._activity = 'start'
        self._players: Dict[str, Player] = {}

    # Queries
    def get_activity(self) -> str:
        return self._activity

    def get_players(self) -> Dict[str, Player]:
        return dict(self._players)

    def get_player(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    def client_players(self) -> List[Player]:
        return [p for p in self._players.values() if p.role == 'client']

    def snapshot(self) -> Dict[str, Any]:
        groups: Dict[str, List[str]] = {}
        for p in self._players.values():
            if p.group_id:
                groups.setdefault(p.group_id, []).append(p.id)
        return {
            'currentActivity': self._activity,
            'players': {pid: p.to_dict() for pid, p in self._players.items()},
            'groups': groups or None,
        }

    # Mutations
    def add_player(self, player: Player) -> None:
        self._players[player.id] = player
        logger.info(f"[state] player_joined id={player.id} role={player.role} group={player.group_id}")
        self.broadcast_state()
        self.broadcast_event({'type': 'player_joined', 'player': player.to_dict()})

    def remove_player(self, player_id: str) -> None:
        if self._players.pop(player_id, None) is None:
            return
        logger.info(f"[state] player_left id={player_id}")
        self.broadcast_state()
        self.broadcast_event({'type': 'player_left', 'playerId': player_id})

    def set_activity(self, activity: str) -> None:
        if activity not in ACTIVITY_IDS:
            raise ValueError(f"Unknown activity: {activity}")
        self._activity = activity
        logger.info(f"[state] activity_started activity={activity}")
        self.broadcast_state()
        self.broadcast_event({'type': 'activity_started', 'activity': activity})

    def assign_group(self) -> str:
        label = self.group_labels[self._group_index % len(self.group_labels)]
        self._group_index += 1
        return label

    def reset(self) -> None:
        self._players = {}
        self._group_index = 0
        self.set_activity(LOBBY)

    # Broadcasting
    def broadcast_state(self) -> None:
        self.transport.broadcast({'type': 'state_broadcast', 'state': self.snapshot()})

    def broadcast_event(self, event: Dict[str, Any]) -> None:
        self.transport.broadcast(event)

    def broadcast_light_test(self, on: bool) -> None:
        self.broadcast_event({'type': 'light_test', 'on': bool(on)})
