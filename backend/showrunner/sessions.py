import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)

# No I, O, 0 or 1: codes are read off a screen and typed on phones
SESSION_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def generate_session_code(length=8, rng=None):
    """Generate a short, human-typeable session code."""
    rng = rng or random
    return ''.join(rng.choices(SESSION_CODE_ALPHABET, k=length))


@dataclass
class Session:
    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = True

    def to_dict(self):
        return {
            'id': self.id,
            'createdAt': self.created_at.isoformat(),
            'isActive': self.is_active,
        }


class SessionGate:
    """Admits connections into the single live session.

    Membership is keyed by connection id. The device map survives a
    disconnect so a returning phone can be matched to its previous
    connection; it is only cleared when the session ends.
    """

    def __init__(self, transport, code_length=8, rng=None):
        self.transport = transport
        self.code_length = code_length
        self.rng = rng
        self._session: Optional[Session] = None
        self._members: Set[str] = set()
        self._device_to_sid: Dict[str, str] = {}

    def create_session(self) -> Session:
        if self._session:
            self.end_session()
        self._session = Session(id=generate_session_code(self.code_length, self.rng))
        logger.info(f"[session] created id={self._session.id}")
        return self._session

    def validate_and_register(self, sid: str, session_id: Optional[str], device_id: Optional[str] = None) -> bool:
        session = self._session
        if not session or not session.is_active:
            logger.info(f"[session] rejected sid={sid} reason=no_active_session")
            return False
        if not isinstance(session_id, str) or session_id.strip() != session.id:
            logger.info(f"[session] rejected sid={sid} reason=code_mismatch supplied={session_id!r}")
            return False
        if not isinstance(device_id, str):
            device_id = None

        self._members.add(sid)
        if device_id:
            previous = self._device_to_sid.get(device_id)
            if previous and previous != sid:
                logger.info(f"[session] reconnect device={device_id} previous={previous} sid={sid}")
            self._device_to_sid[device_id] = sid
        logger.info(f"[session] registered sid={sid} session={session.id}")
        return True

    def is_socket_registered(self, sid: str) -> bool:
        if not self._session or not self._session.is_active:
            return False
        return sid in self._members

    def handle_disconnect(self, sid: str) -> None:
        self._members.discard(sid)

    def get_previous_socket_id(self, device_id: str) -> Optional[str]:
        return self._device_to_sid.get(device_id)

    def get_active_session(self) -> Optional[Session]:
        return self._session

    def connected_count(self) -> int:
        return len(self._members) if self._session else 0

    def end_session(self) -> None:
        """End the session: notify every member, disconnect it, forget everything."""
        session = self._session
        if not session:
            return
        logger.info(f"[session] ending id={session.id} members={len(self._members)}")
        session.is_active = False
        # Disconnecting re-enters handle_disconnect, so walk a copy
        for sid in list(self._members):
            self.transport.notify(sid, 'session_ended', {'message': 'Session has ended'})
            self.transport.disconnect(sid)
        self._members.clear()
        self._device_to_sid.clear()
        self._session = None
