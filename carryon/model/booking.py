# carryon/model/booking.py
from __future__ import annotations
from decimal import Decimal

from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import D, round_money
from .types import BookingStatus, PaymentMethod, PaymentStatus


class Booking(db.Model):
    __tablename__ = "booking"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    pickup_address_id = db.Column(db.Integer, db.ForeignKey("address.id"), nullable=False)
    delivery_address_id = db.Column(db.Integer, db.ForeignKey("address.id"), nullable=False)
    driver_id = db.Column(db.Integer, db.ForeignKey("driver.id", ondelete="SET NULL"), nullable=True, index=True)

    vehicle_type = db.Column(db.String(64), nullable=False, default="")
    scheduled_time = db.Column(db.DateTime, nullable=True)

    # Money (estimated_price - discount_amount is the working price until DELIVERED)
    estimated_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    promo_code = db.Column(db.String(64), nullable=True)

    distance = db.Column(db.Float, nullable=False, default=0.0)
    duration = db.Column(db.Integer, nullable=False, default=0)   # minutes
    eta_minutes = db.Column(db.Integer, nullable=True)

    status = db.Column(db.Enum(BookingStatus, native_enum=False, length=32), nullable=False,
                       default=BookingStatus.PENDING, index=True)
    payment_method = db.Column(db.Enum(PaymentMethod, native_enum=False, length=16), nullable=False,
                               default=PaymentMethod.CASH)
    payment_status = db.Column(db.Enum(PaymentStatus, native_enum=False, length=16), nullable=False,
                               default=PaymentStatus.PENDING)

    otp = db.Column(db.String(4), nullable=False)
    delivery_proof_url = db.Column(db.String(1024), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    pickup_address = db.relationship("Address", foreign_keys=[pickup_address_id], lazy="joined")
    delivery_address = db.relationship("Address", foreign_keys=[delivery_address_id], lazy="joined")
    driver = db.relationship("Driver", lazy="joined")
    order = db.relationship("Order", back_populates="booking", uselist=False, lazy="select")
    invoice = db.relationship("Invoice", back_populates="booking", uselist=False, lazy="select")

    # --------- money helpers ----------
    def working_price_dec(self) -> Decimal:
        price = D(self.estimated_price) - D(self.discount_amount)
        return round_money(max(price, Decimal("0")))

    def charged_price_dec(self) -> Decimal:
        """finalPrice once set or settled, otherwise the estimate (refund and invoice basis)."""
        final_ = D(self.final_price)
        if final_ > 0 or self.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            return round_money(final_)
        return round_money(D(self.estimated_price))

    def as_api(self, include_otp=True):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "pickupAddress": self.pickup_address.as_api() if self.pickup_address else None,
            "deliveryAddress": self.delivery_address.as_api() if self.delivery_address else None,
            "driver": self.driver.as_api() if self.driver else None,
            "vehicleType": self.vehicle_type,
            "scheduledTime": iso(self.scheduled_time),
            "estimatedPrice": float(self.estimated_price or 0),
            "discountAmount": float(self.discount_amount or 0),
            "finalPrice": float(self.final_price or 0),
            "promoCode": self.promo_code,
            "distance": self.distance,
            "duration": self.duration,
            "etaMinutes": self.eta_minutes,
            "status": self.status.value,
            "paymentMethod": self.payment_method.value,
            "paymentStatus": self.payment_status.value,
            "deliveryProofUrl": self.delivery_proof_url,
            "cancelReason": self.cancel_reason,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "deliveredAt": iso(self.delivered_at),
            "cancelledAt": iso(self.cancelled_at),
        }
        # the requester reads the OTP to hand it to the driver at drop-off
        if include_otp:
            data["otp"] = self.otp
        return data
