from flask import Blueprint, current_app, jsonify, request

from showrunner.state import ACTIVITY_IDS

admin = Blueprint('admin', __name__)


def _engine():
    return current_app.extensions['showrunner']


@admin.route('/session', methods=['POST'])
def create_session():
    """Open a fresh session (ending any previous one) and reset the room."""
    session = _engine().create_session()
    current_app.logger.info(f"[admin] session created id={session.id}")
    return jsonify({
        'success': True,
        'session': {
            'id': session.id,
            'createdAt': session.created_at.isoformat(),
        },
    }), 201


@admin.route('/state', methods=['GET'])
def get_state():
    engine = _engine()
    with engine.lock:
        session = engine.sessions.get_active_session()
        players = list(engine.state.get_players().values())
        activity = engine.state.get_activity()
        connected = engine.sessions.connected_count()

    payload = {
        'session': None,
        'players': [
            {'id': p.id, 'nickname': p.nickname, 'role': p.role, 'groupId': p.group_id}
            for p in players
        ],
    }
    if session:
        payload['session'] = {
            **session.to_dict(),
            'activity': activity,
            'playerCount': sum(1 for p in players if p.role == 'client'),
            'entertainerConnected': any(p.role == 'entertainer' for p in players),
            'connectedCount': connected,
        }
    return jsonify(payload)


@admin.route('/session/activity', methods=['POST'])
def switch_activity():
    data = request.get_json(silent=True) or {}
    activity = data.get('activity')
    engine = _engine()

    if not engine.sessions.get_active_session():
        return jsonify({'error': 'No active session'}), 400
    if activity not in ACTIVITY_IDS:
        return jsonify({'error': f'Invalid activity: {activity}'}), 400

    engine.router.switch_activity(activity)
    current_app.logger.info(f"[admin] activity switched to {activity}")
    return jsonify({'success': True, 'activity': activity})


@admin.route('/session', methods=['DELETE'])
def end_session():
    _engine().end_session()
    current_app.logger.info("[admin] session ended")
    return jsonify({'success': True})
