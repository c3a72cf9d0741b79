from flask import Blueprint

bp = Blueprint("booking", __name__, url_prefix="/api/bookings")

from . import routes  # noqa: E402,F401
