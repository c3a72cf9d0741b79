# ------- carryon/utils/decorators.py -------
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..errors import AuthenticationError
from ..model.user import User

def _current_user():
    verify_jwt_in_request()
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None

def user_required(fn):
    """Require a bearer token that maps to a known user; exposes it as g.user."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        u = _current_user()
        if not u:
            raise AuthenticationError("Authentication required")
        g.user = u
        return fn(*args, **kwargs)
    return wrapper

def current_user_id() -> int:
    return g.user.id
