# carryon/booking/routes.py
from __future__ import annotations
from flask import request, current_app

from ..extensions import db
from ..errors import ValidationError
from ..services.booking_service import BookingService
from ..services.ledger_service import LedgerService
from ..utils.api import ok
from ..utils.decorators import user_required, current_user_id
from . import bp

# ---- helpers ---------------------------------------------------------------

def _service() -> BookingService:
    cfg = current_app.config
    ledger = LedgerService(db.session, max_topup=cfg["WALLET_MAX_TOPUP"])
    return BookingService(db.session, ledger, default_assigned_eta=cfg["DEFAULT_ASSIGNED_ETA_MINUTES"])

# ---- routes ----------------------------------------------------------------

@bp.post("")
@user_required
def create_booking():
    data = request.get_json(silent=True) or {}
    booking = _service().create(current_user_id(), data)
    return ok(booking.as_api(), status=201)


@bp.get("")
@user_required
def list_bookings():
    """
    Query params:
      - status=PENDING|SEARCHING_DRIVER|...|DELIVERED|CANCELLED
    """
    bookings = _service().list(current_user_id(), status=request.args.get("status"))
    return ok([b.as_api() for b in bookings])


@bp.get("/<int:booking_id>")
@user_required
def get_booking(booking_id: int):
    b = _service().get(current_user_id(), booking_id)
    data = b.as_api()
    data["order"] = b.order.as_api() if b.order else None
    data["invoice"] = b.invoice.as_api() if b.invoice else None
    return ok(data)


@bp.post("/<int:booking_id>/verify-delivery")
@user_required
def verify_delivery(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = _service().verify_delivery(
        current_user_id(), booking_id, data.get("otp"), proof_ref=data.get("deliveryProofUrl")
    )
    return ok(booking.as_api(), message="Delivery confirmed")


@bp.put("/<int:booking_id>/status")
@user_required
def update_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        raise ValidationError("status is required")
    booking = _service().update_status(
        current_user_id(), booking_id, data.get("status"),
        eta=data.get("eta"), driver_id=data.get("driverId"),
    )
    return ok(booking.as_api())


@bp.get("/<int:booking_id>/eta")
@user_required
def get_eta(booking_id: int):
    return ok(_service().eta(current_user_id(), booking_id))


@bp.post("/<int:booking_id>/cancel")
@user_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = _service().cancel(current_user_id(), booking_id, reason=data.get("reason"))
    return ok(booking.as_api(), message="Booking cancelled")
