# carryon/promo/routes.py
from __future__ import annotations
from flask import request, current_app

from ..extensions import db
from ..errors import ValidationError
from ..services.promo_service import PromoService
from ..services.ledger_service import LedgerService
from ..utils.api import ok
from ..utils.decorators import user_required, current_user_id
from ..utils.money import parse_money
from . import bp


def _service() -> PromoService:
    cfg = current_app.config
    ledger = LedgerService(db.session, max_topup=cfg["WALLET_MAX_TOPUP"])
    return PromoService(db.session, ledger, referral_reward=cfg["REFERRAL_REWARD"])


@bp.post("/validate")
@user_required
def validate_code():
    data = request.get_json(silent=True) or {}
    if not data.get("code"):
        raise ValidationError("Promo code is required")
    try:
        order_amount = parse_money(data.get("orderAmount"), "orderAmount")
    except ValueError as e:
        raise ValidationError(str(e))
    return ok(_service().validate(data["code"], current_user_id(), order_amount))


@bp.post("/apply")
@user_required
def apply_code():
    data = request.get_json(silent=True) or {}
    code, booking_id = data.get("code"), data.get("bookingId")
    if not code or not booking_id:
        raise ValidationError("Code and bookingId are required")
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        raise ValidationError("bookingId must be an integer")
    return ok(_service().apply(code, booking_id, current_user_id()))


@bp.get("/coupons")
@user_required
def list_coupons():
    coupons = _service().available_coupons(current_user_id())
    return ok([c.as_api() for c in coupons])


@bp.get("/referral")
@user_required
def referral_info():
    return ok(_service().referral_info(current_user_id()))


@bp.post("/referral/apply")
@user_required
def apply_referral():
    data = request.get_json(silent=True) or {}
    if not data.get("referralCode"):
        raise ValidationError("Referral code is required")
    svc = _service()
    svc.apply_referral(data["referralCode"], current_user_id())
    return ok(message=f"RM {svc.referral_reward} credited to your wallet!")
