# carryon/wallet/routes.py
from __future__ import annotations
from flask import request, current_app

from ..extensions import db
from ..errors import ValidationError
from ..services.ledger_service import LedgerService
from ..utils.api import ok
from ..utils.decorators import user_required, current_user_id
from ..utils.money import parse_money
from . import bp


def _service() -> LedgerService:
    return LedgerService(db.session, max_topup=current_app.config["WALLET_MAX_TOPUP"])

def _to_int(v, default):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


@bp.get("")
@user_required
def get_wallet():
    wallet, recent = _service().summary(
        current_user_id(), recent=current_app.config["WALLET_RECENT_TRANSACTIONS"]
    )
    data = wallet.as_api()
    data["transactions"] = [t.as_api() for t in recent]
    return ok(data)


@bp.post("/topup")
@user_required
def top_up():
    data = request.get_json(silent=True) or {}
    try:
        amount = parse_money(data.get("amount"))
    except ValueError:
        raise ValidationError("Invalid amount")
    wallet = _service().top_up(current_user_id(), amount, reference=data.get("paymentReference"))
    return ok({"balance": float(wallet.balance)})


@bp.post("/pay")
@user_required
def pay_with_wallet():
    data = request.get_json(silent=True) or {}
    booking_id = _to_int(data.get("bookingId"), None)
    if booking_id is None:
        raise ValidationError("Booking ID is required")
    wallet, amount = _service().pay_booking(current_user_id(), booking_id)
    return ok({"balance": float(wallet.balance), "amountPaid": float(amount)})


@bp.get("/transactions")
@user_required
def list_transactions():
    page = max(_to_int(request.args.get("page"), 1), 1)
    limit = min(max(_to_int(request.args.get("limit"), 20), 1), 100)
    items, total = _service().transactions(current_user_id(), page=page, limit=limit)
    return ok({
        "transactions": [t.as_api() for t in items],
        "total": total,
        "page": page,
        "limit": limit,
    })
