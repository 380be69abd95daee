import logging
import os

from app import create_app, socketio

app = create_app()

if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1')
    port = int(os.environ.get('PORT', 8080))
    logging.getLogger(__name__).info('Serving on port %d (async mode %s)', port, socketio.async_mode)
    try:
        socketio.run(app, host='0.0.0.0', port=port, debug=debug, use_reloader=False)
    finally:
        app.extensions['reminder_worker'].shutdown()
