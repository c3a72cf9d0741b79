from flask import Blueprint

bp = Blueprint("vehicle", __name__, url_prefix="/api/vehicles")

from . import routes  # noqa: E402,F401
