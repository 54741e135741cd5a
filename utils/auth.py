import logging
from functools import wraps

from flask import g, jsonify, request

from utils.database import get_user

logger = logging.getLogger(__name__)

USER_HEADER = 'X-User-Id'


def require_user(view):
    """
    Resolve the caller from the ``X-User-Id`` header set by the auth gateway.

    The user row is exposed as ``g.user``; unknown or missing ids get a 401.
    """
    @wraps(view)
    def wrapped(*args, **kwargs):
        user_id = request.headers.get(USER_HEADER)
        user = get_user(user_id) if user_id else None
        if not user:
            logger.warning('Unauthenticated request to %s', request.path)
            return jsonify({
                'status': 'error',
                'message': 'User not authenticated'
            }), 401
        g.user = user
        return view(*args, **kwargs)
    return wrapped
