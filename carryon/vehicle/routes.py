# carryon/vehicle/routes.py
from ..extensions import db
from ..model import Vehicle
from ..utils.api import ok
from . import bp


@bp.get("")
def list_vehicles():
    vehicles = (db.session.query(Vehicle)
                .filter(Vehicle.is_available.is_(True))
                .order_by(Vehicle.base_price.asc())
                .all())
    return ok([v.as_api() for v in vehicles])
