# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import error_response
from .errors import ValidationError


def with_actor(f):
    """
    Resolve the acting user from the X-User-Id header.

    Sets g.actor_id to the integer id, or None when the header is absent.
    Authentication happens upstream; a malformed id is a 400.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id")
        if raw is None or not raw.strip():
            g.actor_id = None
        else:
            try:
                g.actor_id = int(raw.strip())
            except ValueError:
                return error_response(ValidationError("X-User-Id must be an integer", header="X-User-Id"))

        return f(*args, **kwargs)

    return decorated_function
