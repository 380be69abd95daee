import logging

from flask import Flask, jsonify
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect, CSRFError
from google.api_core.exceptions import GoogleAPIError

from config import Config

socketio = SocketIO()
csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def _register_error_handlers(app):
    from app.errors import BackendError, PlatformError

    @app.errorhandler(PlatformError)
    def handle_platform_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(GoogleAPIError)
    def handle_backend_error(e):
        logger.exception('Record store call failed')
        err = BackendError()
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify({'success': False, 'error': e.description}), 400

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'success': False, 'error': 'الصفحة غير موجودة'}), 404


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    from app.logging_config import init_logging
    init_logging(app)

    csrf.init_app(app)

    if app.config.get('FIREBASE_ENABLED', True):
        from app.firebase_init import init_firebase
        init_firebase(app.config)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet'),
    )

    # The session context is loaded before and persisted after every request
    from app.decorators import load_client_session, save_client_session

    @app.before_request
    def before_request():
        load_client_session()

    app.after_request(save_client_session)

    from app.reminders import ReminderWorker

    def _deliver_reminder(client_id, reminder):
        socketio.emit('reminder', reminder, to=client_id)

    worker = ReminderWorker(
        _deliver_reminder,
        interval_seconds=app.config.get('REMINDER_INTERVAL_SECONDS', 60),
        default_minutes_before=app.config.get('REMINDER_MINUTES_BEFORE', 30),
    )
    app.extensions['reminder_worker'] = worker
    if app.config.get('SCHEDULER_ENABLED', True):
        worker.start()

    _register_error_handlers(app)

    # Register blueprints
    from app.routes import auth, groups, exams, main, planner, student
    app.register_blueprint(auth.bp)
    app.register_blueprint(groups.bp)
    app.register_blueprint(exams.bp)
    app.register_blueprint(main.bp)
    app.register_blueprint(planner.bp)
    app.register_blueprint(student.bp)

    from app import events  # noqa: F401

    return app
