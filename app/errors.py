from flask import flash, jsonify, render_template, request

from app.lms_api import ApiError
from app.logging_setup import get_logger

logger = get_logger(__name__)


def flash_api_error(exc, fallback):
    """Show a failed mutation to the user as a danger toast."""
    # Client errors and network failures carry a useful message; server errors do not.
    if isinstance(exc, ApiError) and exc.status_code < 500:
        message = exc.message
    else:
        message = fallback
    flash(message, 'danger')


def json_error(exc):
    status = exc.status_code if exc.status_code >= 400 else 502
    return jsonify({'success': False, 'message': exc.message}), status


def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(error):
        if request.is_json or request.path.startswith('/api/'):
            return jsonify({'success': False, 'message': 'Not found.'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(ApiError)
    def unhandled_api_error(exc):
        # Queries that were not caught by a route: a 404 upstream is a 404 here.
        if exc.is_not_found:
            return not_found(exc)
        logger.error("unhandled api error path=%s status=%s message=%s", request.path, exc.status_code, exc.message)
        if request.is_json or request.path.startswith('/api/'):
            return json_error(exc)
        return render_template('errors/500.html', message=exc.message), 502

    @app.errorhandler(500)
    def server_error(error):
        logger.exception("unhandled error method=%s path=%s", request.method, request.path)
        return render_template('errors/500.html', message=None), 500
