from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO()


def _allowed_origins(raw):
    origins = [o.strip() for o in (raw or '').split(',') if o.strip()]
    return '*' if not origins or origins == ['*'] else origins


def create_app(config_class=Config, scheduler=None, transport=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app.config.get('ALLOWED_ORIGINS'))
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        async_mode=flask_app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )

    # Build the core once and hand it to every surface explicitly
    from showrunner.engine import Showrunner
    from showrunner.services.scheduler import Scheduler
    from showrunner.transport import SocketIOTransport
    engine = Showrunner(
        transport or SocketIOTransport(socketio, namespace=namespace),
        scheduler or Scheduler(socketio),
        settings=flask_app.config,
    )
    flask_app.extensions['showrunner'] = engine

    from showrunner.main import main
    flask_app.register_blueprint(main)

    from showrunner.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from showrunner.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=namespace)

    @click.command('serve')
    @click.option('--host', default='0.0.0.0', show_default=True)
    @click.option('--port', default=None, type=int, help='Defaults to the PORT setting.')
    @click.option('--console/--no-console', default=None, help='Read operator commands from stdin.')
    def serve_command(host, port, console):
        """Run the Socket.IO server, optionally with the operator console."""
        from showrunner.console import serve
        serve(flask_app, host=host, port=port, console=console)

    flask_app.cli.add_command(serve_command)

    return flask_app
