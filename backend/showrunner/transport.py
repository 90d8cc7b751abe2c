from typing import Any, Dict

SERVER_EVENT = 'server_event'


class SocketIOTransport:
    """Broadcast, direct-send and disconnect primitives over Flask-SocketIO.

    Uses ``socketio.emit`` rather than ``flask_socketio.emit`` so calls work
    from background tasks as well as from inside event handlers.
    """

    def __init__(self, socketio, namespace: str = '/'):
        self.socketio = socketio
        self.namespace = namespace

    def broadcast(self, event: Dict[str, Any]) -> None:
        self.socketio.emit(SERVER_EVENT, event, namespace=self.namespace)

    def send_to(self, sid: str, event: Dict[str, Any]) -> None:
        self.socketio.emit(SERVER_EVENT, event, to=sid, namespace=self.namespace)

    def notify(self, sid: str, name: str, payload: Dict[str, Any]) -> None:
        self.socketio.emit(name, payload, to=sid, namespace=self.namespace)

    def disconnect(self, sid: str) -> None:
        self.socketio.server.disconnect(sid, namespace=self.namespace)
