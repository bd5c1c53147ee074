"""Route decorators for common patterns like error handling and authentication.

This module provides reusable decorators to reduce boilerplate in route handlers.
"""
import functools
import logging
from typing import Callable

from flask import request
from werkzeug.exceptions import HTTPException

from dm_server.exception.MessagingError import StoreUnavailableError, UnknownMessageError
from dm_server.exception.UnauthorizedError import UnauthorizedError
from dm_server.utils.helpers import respond_error
from dm_server.security.authentication import get_auth_payload

logger = logging.getLogger(__name__)


def handle_errors(func: Callable) -> Callable:
    """Decorator to handle common exceptions in route handlers.

    Catches:
    - UnauthorizedError -> 401
    - UnknownMessageError -> 404
    - ValueError (including ValidationError) -> 400
    - StoreUnavailableError -> 503
    - werkzeug HTTPException (e.g. 413 for an oversize upload) -> its own code
    - Other exceptions -> 500
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UnauthorizedError as e:
            logger.warning("Unauthorized: %s", e)
            return respond_error(str(e), status=401)
        except UnknownMessageError as e:
            return respond_error(str(e), status=404)
        except ValueError as e:
            logger.warning("Validation error: %s", e)
            return respond_error(str(e), status=400)
        except StoreUnavailableError as e:
            logger.error("Store unavailable in %s: %s", func.__name__, e)
            return respond_error('Service temporarily unavailable', status=503)
        except HTTPException as e:
            logger.warning("HTTP %s in %s: %s", e.code, func.__name__, e.description)
            return respond_error(e.description, status=e.code)
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return respond_error('Server error', status=500)
    return wrapper


def require_auth(func: Callable) -> Callable:
    """Decorator to require authentication and inject payload into handler.

    The decorated function receives `auth_payload` as a keyword argument.

    Usage:
        @app.route('/protected')
        @require_auth
        def protected_route(auth_payload):
            identity = auth_payload.get('email')
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        payload = get_auth_payload(request)
        if not payload.get('email'):
            raise UnauthorizedError('Token does not carry an identity')
        kwargs['auth_payload'] = payload
        return func(*args, **kwargs)
    return wrapper
