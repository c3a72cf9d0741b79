# carryon/invoice/routes.py
from __future__ import annotations
from flask import current_app

from ..extensions import db
from ..services.invoice_service import InvoiceService
from ..utils.api import ok
from ..utils.decorators import user_required, current_user_id
from . import bp


def _service() -> InvoiceService:
    cfg = current_app.config
    return InvoiceService(
        db.session,
        tax_rate=cfg["INVOICE_TAX_RATE"],
        currency=cfg["INVOICE_CURRENCY"],
        prefix=cfg["INVOICE_PREFIX"],
    )


@bp.post("/<int:booking_id>")
@user_required
def generate_invoice(booking_id: int):
    invoice, created = _service().generate(current_user_id(), booking_id)
    return ok(invoice.as_api(), status=201 if created else 200)


@bp.get("/<int:booking_id>")
@user_required
def get_invoice(booking_id: int):
    return ok(_service().get(current_user_id(), booking_id).as_api())


@bp.get("")
@user_required
def list_invoices():
    invoices = _service().list(current_user_id())
    return ok([
        {
            **inv.as_api(),
            "booking": {
                "id": inv.booking.id,
                "vehicleType": inv.booking.vehicle_type,
                "status": inv.booking.status.value,
                "pickupAddress": {"address": inv.booking.pickup_address.address},
                "deliveryAddress": {"address": inv.booking.delivery_address.address},
                "createdAt": inv.booking.created_at.isoformat() if inv.booking.created_at else None,
            },
        }
        for inv in invoices
    ])


@bp.get("/<int:booking_id>/detail")
@user_required
def invoice_detail(booking_id: int):
    return ok(_service().detail(current_user_id(), booking_id))
