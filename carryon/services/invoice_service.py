# carryon/services/invoice_service.py
from __future__ import annotations
import logging
import random
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, AuthorizationError, StateConflictError
from ..model import Booking, Invoice, User, BookingStatus
from ..utils.dates import utcnow, iso
from ..utils.money import D, round_money
from . import atomic

log = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 5

COMPANY = {
    "name": "CarryOn Logistics Sdn Bhd",
    "registration": "202301XXXXXX (XXXXXXX-X)",
    "sstNo": "W10-XXXX-XXXXXXXX",
    "address": "Level XX, Tower X, KLCC\n50088 Kuala Lumpur, Malaysia",
    "phone": "+60 3-XXXX XXXX",
    "email": "billing@carryon.my",
}


def split_tax(price, rate) -> tuple[Decimal, Decimal]:
    """Tax-inclusive price -> (subtotal, tax), both rounded half-up to cents."""
    price = D(price)
    subtotal = round_money(price / (Decimal("1") + D(rate)))
    tax = round_money(price - subtotal)
    return subtotal, tax


class InvoiceService:
    def __init__(self, session, tax_rate=0.06, currency="MYR", prefix="CO"):
        self.session = session
        self.tax_rate = D(tax_rate)
        self.currency = currency
        self.prefix = prefix

    def _gen_invoice_number(self) -> str:
        return f"{self.prefix}-{utcnow().strftime('%Y%m%d')}-{random.randint(1000, 9999)}"

    def _owned_booking(self, user_id: int, booking_id: int) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id:
            raise AuthorizationError("Not authorized")
        return booking

    def _existing(self, booking_id: int) -> Invoice | None:
        return self.session.query(Invoice).filter_by(booking_id=booking_id).one_or_none()

    def generate(self, user_id: int, booking_id: int) -> tuple[Invoice, bool]:
        """Returns (invoice, created). Re-running for the same booking returns the first invoice."""
        booking = self._owned_booking(user_id, booking_id)
        existing = self._existing(booking.id)
        if existing is not None:
            return existing, False
        if booking.status == BookingStatus.CANCELLED:
            raise StateConflictError("Cannot invoice a cancelled booking")

        price = booking.charged_price_dec()
        subtotal, tax = split_tax(price, self.tax_rate)

        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            invoice = Invoice(
                booking_id=booking.id,
                user_id=user_id,
                invoice_number=self._gen_invoice_number(),
                subtotal=subtotal,
                tax=tax,
                discount=round_money(booking.discount_amount),
                total=price,
                tax_rate=self.tax_rate,
                currency=self.currency,
            )
            try:
                with atomic(self.session):
                    self.session.add(invoice)
            except IntegrityError:
                # either the number collided or another request invoiced this booking first
                existing = self._existing(booking.id)
                if existing is not None:
                    return existing, False
                log.warning("invoice number collision on attempt %s for booking %s", attempt, booking.id)
                continue
            log.info("invoice %s issued for booking %s", invoice.invoice_number, booking.id)
            return invoice, True

        raise StateConflictError("Could not allocate a unique invoice number, please retry")

    def get(self, user_id: int, booking_id: int) -> Invoice:
        invoice = self._existing(booking_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.user_id != user_id:
            raise AuthorizationError("Not authorized")
        return invoice

    def list(self, user_id: int) -> list[Invoice]:
        return (self.session.query(Invoice)
                .filter(Invoice.user_id == user_id)
                .order_by(Invoice.issued_at.desc(), Invoice.id.desc())
                .all())

    def detail(self, user_id: int, booking_id: int) -> dict:
        invoice = self.get(user_id, booking_id)
        booking = invoice.booking
        customer = self.session.get(User, booking.user_id)
        driver = booking.driver
        return {
            "invoice": invoice.as_api(),
            "booking": {
                "id": booking.id,
                "vehicleType": booking.vehicle_type,
                "distance": booking.distance,
                "duration": booking.duration,
                "status": booking.status.value,
                "paymentMethod": booking.payment_method.value,
                "createdAt": iso(booking.created_at),
                "deliveredAt": iso(booking.delivered_at),
                "pickupAddress": booking.pickup_address.as_api() if booking.pickup_address else None,
                "deliveryAddress": booking.delivery_address.as_api() if booking.delivery_address else None,
                "driver": {
                    "name": driver.name,
                    "phone": driver.phone,
                    "vehicleNumber": driver.vehicle_number,
                } if driver else None,
            },
            "customer": {
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
            },
            "company": COMPANY,
        }
