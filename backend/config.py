import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    PORT = int(os.environ.get('PORT', '4000'))
    # Comma-separated list; '*' accepts any origin
    ALLOWED_ORIGINS = os.environ.get('ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    SESSION_CODE_LENGTH = int(os.environ.get('SESSION_CODE_LENGTH', '8'))
    # Read operator commands from stdin while serving. 0 disables.
    ENABLE_CONSOLE = int(os.environ.get('ENABLE_CONSOLE', '1'))

    # Activity pacing (milliseconds)
    BEATS_INSTRUCTIONS_MS = int(os.environ.get('BEATS_INSTRUCTIONS_MS', '38000'))
    BEATS_RESULTS_MS = int(os.environ.get('BEATS_RESULTS_MS', '10000'))
    AR_ANCHORING_MS = int(os.environ.get('AR_ANCHORING_MS', '10000'))
    AR_RESULTS_MS = int(os.environ.get('AR_RESULTS_MS', '10000'))
    ENERGIZER_MOVEMENT_MS = int(os.environ.get('ENERGIZER_MOVEMENT_MS', '60000'))
    ENERGIZER_SEND_MS = int(os.environ.get('ENERGIZER_SEND_MS', '12000'))
    ENERGIZER_INPUT_WINDOW_MS = int(os.environ.get('ENERGIZER_INPUT_WINDOW_MS', '20000'))
    ENERGIZER_RESULTS_MS = int(os.environ.get('ENERGIZER_RESULTS_MS', '5000'))
    INSTRUMENTS_DEMO_STEP_MS = int(os.environ.get('INSTRUMENTS_DEMO_STEP_MS', '8000'))
    INSTRUMENTS_FINALE_MS = int(os.environ.get('INSTRUMENTS_FINALE_MS', '20000'))

    # AR tuning
    AR_TAPS_PER_PLAYER = int(os.environ.get('AR_TAPS_PER_PLAYER', '10'))
    AR_BOSS_MAX_HEALTH = int(os.environ.get('AR_BOSS_MAX_HEALTH', '30'))
