from flask import Blueprint

bp = Blueprint("rating", __name__, url_prefix="/api/ratings")

from . import routes  # noqa: E402,F401
