"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from checkin import db
from checkin.models.user import User
from checkin.services.permissions import Capability, actor_can
from checkin.utils.helpers import error_response

def current_actor() -> User:
    """Actor resolved for this request by ``capability_required``."""
    return g.actor

def capability_required(*capabilities: Capability):
    """Decorator to require a bearer token and any of ``capabilities``.

    The actor is looked up once per request and kept on ``g.actor``.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            identity = get_jwt_identity()

            try:
                user = db.session.get(User, int(identity))
            except (TypeError, ValueError):
                user = None

            if not user or not user.is_active:
                return error_response("Unknown or inactive user", 401, code='unauthorized')

            if not any(actor_can(user, capability) for capability in capabilities):
                action = capabilities[0].value.replace('_', ' ')
                return error_response(f"Not allowed to {action}", 403, code='forbidden')

            g.actor = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator
