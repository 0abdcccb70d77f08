import os
from app import create_app, socketio
from app.logging_setup import get_logger

app = create_app()
logger = get_logger(__name__)

if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1')
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 8080))
    logger.info("starting LMS web host=%s port=%s api=%s", host, port, app.config['LMS_API_BASE_URL'])
    socketio.run(app, host=host, port=port, debug=debug)
