# carryon/services/booking_service.py
from __future__ import annotations
import logging
import random

from sqlalchemy import update

from ..errors import (
    ValidationError, NotFoundError, AuthorizationError,
    InvalidOtp, AlreadyDelivered, AlreadyCancelled, NotCancellable, IllegalTransition,
)
from ..model import (
    Booking, Address, Driver, Order,
    BookingStatus, PaymentMethod, PaymentStatus, TransactionType, AddressType,
)
from ..model.types import BOOKING_TRANSITIONS, TERMINAL_STATUSES, parse_enum
from ..utils.dates import utcnow, parse_iso8601
from ..utils.money import D, round_money
from . import atomic
from .ledger_service import LedgerService

log = logging.getLogger(__name__)

ETA_MESSAGES = {
    BookingStatus.PENDING: "Waiting for confirmation",
    BookingStatus.SEARCHING_DRIVER: "Looking for a nearby driver",
    BookingStatus.DRIVER_ASSIGNED: "Driver is on the way to pickup",
    BookingStatus.DRIVER_ARRIVED: "Driver has arrived at pickup",
    BookingStatus.PICKUP_DONE: "Package picked up",
    BookingStatus.IN_TRANSIT: "Package is on the way",
    BookingStatus.DELIVERED: "Package delivered",
    BookingStatus.CANCELLED: "Booking cancelled",
}


def generate_delivery_otp() -> str:
    return str(random.randint(1000, 9999))


# ---- payload helpers -------------------------------------------------------

def _to_float(value, field, default=0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be numeric")

def _to_int(value, field, default=0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


class BookingService:
    def __init__(self, session, ledger: LedgerService | None = None, default_assigned_eta=10):
        self.session = session
        self.ledger = ledger or LedgerService(session)
        self.default_assigned_eta = default_assigned_eta

    # ---- lookups -----------------------------------------------------------
    def _owned(self, user_id: int, booking_id: int) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id:
            raise AuthorizationError("Not authorized")
        return booking

    def _claim_terminal(self, booking: Booking, status: BookingStatus, **values) -> bool:
        """
        Move a live booking into a terminal state with one guarded UPDATE.
        Returns False when another request got there first. Either way the
        booking is reloaded, so payment fields read afterwards are current.
        """
        result = self.session.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status.notin_(TERMINAL_STATUSES))
            .values(status=status, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(booking)
        return result.rowcount == 1

    def get(self, user_id: int, booking_id: int) -> Booking:
        return self._owned(user_id, booking_id)

    def list(self, user_id: int, status=None) -> list[Booking]:
        q = self.session.query(Booking).filter(Booking.user_id == user_id)
        if status:
            wanted = parse_enum(BookingStatus, status)
            if wanted is None:
                raise ValidationError(f"Unknown status '{status}'")
            q = q.filter(Booking.status == wanted)
        return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    # ---- create ------------------------------------------------------------
    def _resolve_address(self, user_id: int, ref, inline, label: str) -> Address:
        if ref is not None:
            address = self.session.get(Address, _to_int(ref, f"{label}AddressId"))
            if address is None or address.user_id != user_id:
                raise ValidationError(f"Invalid {label} address")
            return address
        if isinstance(inline, dict):
            text = (inline.get("address") or "").strip()
            if not text:
                raise ValidationError(f"{label} address text is required")
            address_type = parse_enum(AddressType, inline.get("type"), AddressType.OTHER)
            if address_type is None:
                raise ValidationError(f"Invalid {label} address type")
            address = Address(
                user_id=user_id,
                label=inline.get("label") or "",
                address=text,
                landmark=inline.get("landmark") or "",
                latitude=_to_float(inline.get("latitude"), "latitude"),
                longitude=_to_float(inline.get("longitude"), "longitude"),
                contact_name=inline.get("contactName") or "",
                contact_phone=inline.get("contactPhone") or "",
                type=address_type,
            )
            self.session.add(address)
            return address
        raise ValidationError(f"{label} address is required")

    def create(self, user_id: int, data: dict) -> Booking:
        payment_method = parse_enum(PaymentMethod, data.get("paymentMethod"), PaymentMethod.CASH)
        if payment_method is None:
            raise ValidationError("Invalid payment method")

        estimated = round_money(_to_float(data.get("estimatedPrice"), "estimatedPrice"))
        if estimated < 0:
            raise ValidationError("estimatedPrice must not be negative")

        scheduled = None
        if data.get("scheduledTime"):
            scheduled = parse_iso8601(data.get("scheduledTime"))
            if scheduled is None:
                raise ValidationError("Invalid datetime format for scheduledTime")

        with atomic(self.session):
            pickup = self._resolve_address(user_id, data.get("pickupAddressId"), data.get("pickupAddress"), "pickup")
            delivery = self._resolve_address(user_id, data.get("deliveryAddressId"), data.get("deliveryAddress"), "delivery")
            self.session.flush()

            booking = Booking(
                user_id=user_id,
                pickup_address_id=pickup.id,
                delivery_address_id=delivery.id,
                vehicle_type=(data.get("vehicleType") or "").strip(),
                scheduled_time=scheduled,
                estimated_price=estimated,
                distance=_to_float(data.get("distance"), "distance"),
                duration=_to_int(data.get("duration"), "duration"),
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                status=BookingStatus.PENDING,
                otp=generate_delivery_otp(),
            )
            self.session.add(booking)

        log.info("booking %s created by user %s", booking.id, user_id)
        return booking

    # ---- transitions -------------------------------------------------------
    def update_status(self, user_id: int, booking_id: int, status, eta=None, driver_id=None) -> Booking:
        new_status = parse_enum(BookingStatus, status)
        if new_status is None:
            raise ValidationError("Invalid status")
        booking = self._owned(user_id, booking_id)

        if new_status == BookingStatus.CANCELLED:
            # cancel() owns the refund; a plain status write must not fake a refunded state
            return self.cancel(user_id, booking_id)
        if new_status not in BOOKING_TRANSITIONS[booking.status]:
            raise IllegalTransition(
                f"Cannot move booking from {booking.status.value} to {new_status.value}"
            )

        eta_minutes = None
        if eta is not None:
            eta_minutes = _to_int(eta, "eta")
            if eta_minutes < 0:
                raise ValidationError("eta must not be negative")

        with atomic(self.session):
            if driver_id is not None:
                driver = self.session.get(Driver, _to_int(driver_id, "driverId"))
                if driver is None:
                    raise NotFoundError("Driver not found")
                booking.driver_id = driver.id
            if eta_minutes is not None:
                booking.eta_minutes = eta_minutes
            values = {"status": new_status, "updated_at": utcnow()}
            if new_status == BookingStatus.DELIVERED:
                values["delivered_at"] = utcnow()
            # compare-and-set on the status this request validated against
            moved = self.session.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.status == booking.status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if moved.rowcount != 1:
                raise IllegalTransition("Booking status changed meanwhile, reload and retry")
            self.session.expire(booking, list(values))

        log.info("booking %s -> %s", booking.id, new_status.value)
        return booking

    def verify_delivery(self, user_id: int, booking_id: int, otp, proof_ref=None) -> Booking:
        otp = str(otp).strip() if otp is not None else ""
        if not otp:
            raise ValidationError("OTP is required")
        booking = self._owned(user_id, booking_id)
        if booking.status == BookingStatus.DELIVERED:
            raise AlreadyDelivered("Booking already delivered")
        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelled("Booking was cancelled")
        if otp != booking.otp:
            raise InvalidOtp("Invalid OTP")

        with atomic(self.session):
            now = utcnow()
            if not self._claim_terminal(booking, BookingStatus.DELIVERED, delivered_at=now):
                if booking.status == BookingStatus.CANCELLED:
                    raise AlreadyCancelled("Booking was cancelled")
                raise AlreadyDelivered("Booking already delivered")
            if booking.payment_method == PaymentMethod.CASH:
                booking.payment_status = PaymentStatus.COMPLETED
            if D(booking.final_price) <= 0:
                booking.final_price = booking.working_price_dec()
            if proof_ref:
                booking.delivery_proof_url = proof_ref

            order = self.session.query(Order).filter_by(booking_id=booking.id).one_or_none()
            if order is None:
                self.session.add(Order(booking_id=booking.id, tags=[]))
            else:
                order.completed_at = now

            if booking.driver_id is not None:
                self.session.execute(
                    update(Driver)
                    .where(Driver.id == booking.driver_id)
                    .values(total_trips=Driver.total_trips + 1)
                    .execution_options(synchronize_session=False)
                )
                if booking.driver is not None:
                    self.session.expire(booking.driver, ["total_trips"])

        log.info("booking %s delivered (otp verified)", booking.id)
        return booking

    def cancel(self, user_id: int, booking_id: int, reason=None) -> Booking:
        booking = self._owned(user_id, booking_id)
        if booking.status.is_terminal:
            raise NotCancellable(f"Booking is already {booking.status.value.lower()}")

        refund = None
        with atomic(self.session):
            claimed = self._claim_terminal(
                booking, BookingStatus.CANCELLED,
                cancelled_at=utcnow(), cancel_reason=(reason or "").strip() or None,
            )
            if not claimed:
                raise NotCancellable(f"Booking is already {booking.status.value.lower()}")
            if (booking.payment_method == PaymentMethod.WALLET
                    and booking.payment_status == PaymentStatus.COMPLETED):
                refund = booking.charged_price_dec()
                if refund > 0:
                    self.ledger.credit(booking.user_id, refund, TransactionType.REFUND,
                                       "Refund for cancelled booking", reference_id=booking.id)
                booking.payment_status = PaymentStatus.REFUNDED

        log.info("booking %s cancelled refund=%s", booking.id, refund)
        return booking

    # ---- projections -------------------------------------------------------
    def eta(self, user_id: int, booking_id: int) -> dict:
        booking = self._owned(user_id, booking_id)
        status = booking.status
        if status == BookingStatus.DRIVER_ASSIGNED:
            eta_minutes = booking.eta_minutes if booking.eta_minutes is not None else self.default_assigned_eta
        elif status in (BookingStatus.DRIVER_ARRIVED, BookingStatus.DELIVERED, BookingStatus.CANCELLED):
            eta_minutes = 0
        else:
            eta_minutes = booking.eta_minutes if booking.eta_minutes is not None else booking.duration

        driver = None
        if booking.driver is not None:
            driver = {
                "name": booking.driver.name,
                "phone": booking.driver.phone,
                "vehicleNumber": booking.driver.vehicle_number,
                "rating": booking.driver.rating,
            }
        return {
            "status": status.value,
            "etaMinutes": eta_minutes,
            "message": ETA_MESSAGES[status],
            "driver": driver,
        }
