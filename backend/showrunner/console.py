import logging
import sys

import click

from showrunner.state import ACTIVITY_IDS

logger = logging.getLogger(__name__)

HELP = f"commands: {', '.join(ACTIVITY_IDS)}, reset, lightson, lightsoff, session, end, status"


def handle_command(engine, line: str) -> str:
    """Apply one operator command and return the line to print."""
    cmd = (line or '').strip().lower()
    if not cmd:
        return ''
    logger.info(f"[console] command={cmd}")

    if cmd in ACTIVITY_IDS:
        engine.router.switch_activity(cmd)
        return f"activity -> {cmd}"
    if cmd == 'reset':
        engine.router.reset()
        return 'state reset'
    if cmd in ('lightson', 'lightsoff'):
        with engine.lock:
            engine.state.broadcast_light_test(cmd == 'lightson')
        return f"light test {'on' if cmd == 'lightson' else 'off'}"
    if cmd == 'session':
        session = engine.create_session()
        return f"session code: {session.id}"
    if cmd == 'end':
        engine.end_session()
        return 'session ended'
    if cmd == 'status':
        with engine.lock:
            session = engine.sessions.get_active_session()
            return (
                f"activity={engine.state.get_activity()} "
                f"session={session.id if session else '-'} "
                f"players={len(engine.state.get_players())}"
            )
    return f"unknown command '{cmd}'; {HELP}"


def console_loop(engine, stream=None) -> None:
    stream = stream or sys.stdin
    click.echo(HELP)
    for line in stream:
        output = handle_command(engine, line)
        if output:
            click.echo(output)


def serve(flask_app, host='0.0.0.0', port=None, console=None) -> None:
    """Run the Socket.IO server, reading console commands from stdin when enabled."""
    from showrunner import socketio

    port = port or int(flask_app.config.get('PORT', 4000))
    if console is None:
        console = bool(flask_app.config.get('ENABLE_CONSOLE', 1))
    if console:
        socketio.start_background_task(console_loop, flask_app.extensions['showrunner'])
    options = {}
    if flask_app.config.get('SOCKETIO_ASYNC_MODE', 'threading') == 'threading':
        # Werkzeug is the server in threading mode
        options['allow_unsafe_werkzeug'] = True
    logger.info(f"[server] listening on {host}:{port}")
    socketio.run(flask_app, host=host, port=port, **options)
