import logging

from .base import ActivityVariant

logger = logging.getLogger(__name__)


class Lobby(ActivityVariant):
    """Waiting room: registration, state requests, and starting the first game."""

    NAME = 'lobby'
    EVENT_HANDLERS = {
        'request_start_beats': '_on_request_start_beats',
    }

    def _on_request_start_beats(self, sid, event):
        logger.info(f"[lobby] sid={sid} requested beats")
        self._switch_activity('beats')
