from flask import Blueprint, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Showrunner event server'})


@main.route('/api/health')
def health():
    return jsonify({'status': 'ok'})
