from flask import jsonify, request
import logging

from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

# Client-facing text per status; every error body is {status, message, path}
ERROR_MESSAGES = {
    400: 'The request could not be understood. Check the submitted fields.',
    404: 'No such resource: {path}',
    405: 'Method {method} is not allowed for {path}.',
    413: 'Upload is larger than the service accepts.',
    500: 'The rehab service hit an internal error. Please try again later.',
}


def error_response(status_code, message=None):
    """JSON error envelope shared by the handlers below"""
    if message is None:
        message = ERROR_MESSAGES.get(status_code, ERROR_MESSAGES[500]).format(
            path=request.path, method=request.method)
    return jsonify({
        'status': 'error',
        'message': message,
        'path': request.path
    }), status_code


def register_error_handlers(app):
    """Register JSON error handlers for the Flask application"""

    def client_error(e):
        logger.warning('%s %s -> %s: %s', request.method, request.path, e.code, e.description)
        return error_response(e.code)

    for code in (400, 404, 405, 413):
        app.register_error_handler(code, client_error)

    @app.errorhandler(500)
    def handle_internal_error(e):
        logger.error('%s %s -> 500: %s', request.method, request.path, e, exc_info=True)
        return error_response(500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            logger.warning('%s %s -> %s: %s', request.method, request.path, e.code, e.description)
            return error_response(e.code, e.description)
        logger.error('Unhandled %s on %s %s: %s', type(e).__name__, request.method,
                     request.path, e, exc_info=True)
        return error_response(500)
