# carryon/rating/routes.py
from __future__ import annotations
from flask import request

from ..extensions import db
from ..services.rating_service import RatingService
from ..utils.api import ok
from ..utils.decorators import user_required, current_user_id
from . import bp


@bp.post("/<int:booking_id>")
@user_required
def submit_rating(booking_id: int):
    data = request.get_json(silent=True) or {}
    order = RatingService(db.session).submit(
        current_user_id(), booking_id,
        data.get("rating"),
        review=data.get("review"),
        tags=data.get("tags"),
        tip=data.get("tipAmount"),
    )
    return ok(order.as_api())


@bp.get("/<int:booking_id>")
@user_required
def get_rating(booking_id: int):
    return ok(RatingService(db.session).get(current_user_id(), booking_id).as_api())


@bp.get("/driver/<int:driver_id>")
@user_required
def driver_ratings(driver_id: int):
    return ok(RatingService(db.session).driver_summary(driver_id))
