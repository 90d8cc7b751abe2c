import logging

from showrunner import create_app
from showrunner.console import serve

app = create_app()
logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

if __name__ == '__main__':
    # Use the SocketIO server so websockets work; console reads stdin
    serve(app)
