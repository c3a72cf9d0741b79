from flask import Blueprint

bp = Blueprint("promo", __name__, url_prefix="/api/promo")

from . import routes  # noqa: E402,F401
