from flask import Flask, g, request
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from config import Config

socketio = SocketIO()
csrf = CSRFProtect()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.setdefault('MAX_CONTENT_LENGTH', app.config.get('MAX_UPLOAD_MB', 25) * 1024 * 1024)

    from app.logging_setup import configure_logging, set_request_id, clear_request_id
    logger = configure_logging(log_dir=app.config['LOG_DIR'], level=app.config['LOG_LEVEL'])

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
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet')
    )

    # Register current_user context processor and before_request
    from app.decorators import load_current_user, get_current_user

    @app.before_request
    def before_request():
        g.request_id = set_request_id(request.headers.get('X-Request-ID'))
        load_current_user()

    @app.after_request
    def after_request(response):
        response.headers['X-Request-ID'] = g.get('request_id', '-')
        if request.endpoint != 'static':
            logger.info("request method=%s path=%s status=%s", request.method, request.path, response.status_code)
        return response

    @app.teardown_request
    def teardown_request(exc):
        clear_request_id()

    @app.context_processor
    def inject_current_user():
        return {'current_user': get_current_user()}

    from app.filters import register_filters
    register_filters(app)

    from app.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from app.routes import (
        auth, main, notifications, announcements, recommendations,
        messages, assignments, ai_management, ai_tutor, profile,
        courses, subscriptions
    )
    app.register_blueprint(auth.bp)
    app.register_blueprint(main.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(announcements.bp)
    app.register_blueprint(recommendations.bp)
    app.register_blueprint(messages.bp)
    app.register_blueprint(assignments.bp)
    app.register_blueprint(ai_management.bp)
    app.register_blueprint(ai_tutor.bp)
    app.register_blueprint(profile.bp)
    app.register_blueprint(courses.bp)
    app.register_blueprint(subscriptions.bp)

    from app import events  # noqa: F401

    return app
