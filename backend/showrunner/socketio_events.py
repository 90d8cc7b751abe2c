import logging

from flask import current_app, request
from flask_socketio import emit

from showrunner import socketio

logger = logging.getLogger(__name__)


def _engine():
    return current_app.extensions['showrunner']


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore[attr-defined]


def handle_connect(auth=None):
    logger.info(f"[socket] connected sid={_get_sid()}")
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(reason=None):
    sid = _get_sid()
    _engine().router.handle_disconnect(sid)
    logger.info(f"[socket] disconnected sid={sid} reason={reason}")


def handle_client_event(data):
    _engine().router.handle_client_event(_get_sid(), data)


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on the configured namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('client_event', handle_client_event, namespace=namespace)
