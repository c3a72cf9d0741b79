# carryon/services/rating_service.py
from __future__ import annotations
import logging
from decimal import Decimal

from sqlalchemy import func

from ..errors import (
    ValidationError, NotFoundError, AuthorizationError,
    NotDelivered, InsufficientFundsError,
)
from ..model import Booking, Driver, Order, BookingStatus, TransactionType
from ..utils.money import D, round_money, round_rating
from . import atomic
from .ledger_service import LedgerService

log = logging.getLogger(__name__)

RECENT_REVIEWS = 20


def parse_rating(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Rating must be between 1 and 5")
    try:
        rating = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be between 1 and 5")
    if rating != value and str(rating) != str(value).strip():
        raise ValidationError("Rating must be a whole number")
    if rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


class RatingService:
    def __init__(self, session, ledger: LedgerService | None = None):
        self.session = session
        self.ledger = ledger or LedgerService(session)

    def _driver_average(self, driver_id: int) -> Decimal | None:
        total, count = (
            self.session.query(func.sum(Order.rating), func.count(Order.id))
            .join(Booking, Booking.id == Order.booking_id)
            .filter(Booking.driver_id == driver_id, Order.rating.isnot(None))
            .one()
        )
        if not count:
            return None
        return round_rating(D(total) / Decimal(count))

    def _transfer_tip(self, booking: Booking, tip) -> Decimal:
        """Best effort: a tip the wallet cannot cover is skipped, never fatal."""
        wallet = self.ledger.get_wallet(booking.user_id, create=False)
        if wallet is None:
            log.info("tip skipped for booking %s: no wallet", booking.id)
            return Decimal("0")
        try:
            self.ledger.debit(booking.user_id, tip, TransactionType.PAYMENT, "Tip for driver",
                              reference_id=booking.id, wallet=wallet)
        except InsufficientFundsError:
            log.info("tip skipped for booking %s: insufficient balance", booking.id)
            return Decimal("0")
        return tip

    def submit(self, user_id: int, booking_id: int, rating, review=None, tags=None, tip=None) -> Order:
        rating = parse_rating(rating)
        if tags is not None and not isinstance(tags, list):
            raise ValidationError("tags must be a list")
        tip_amount = Decimal("0")
        if tip not in (None, ""):
            try:
                tip_amount = round_money(tip)
            except ArithmeticError:
                raise ValidationError("tipAmount must be numeric")
            if tip_amount < 0:
                raise ValidationError("tipAmount must not be negative")

        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id:
            raise AuthorizationError("Not authorized")
        if booking.status != BookingStatus.DELIVERED:
            raise NotDelivered("Can only rate delivered bookings")

        with atomic(self.session):
            order = self.session.query(Order).filter_by(booking_id=booking.id).one_or_none()
            if order is None:
                order = Order(booking_id=booking.id)
                self.session.add(order)
            order.rating = rating
            order.review = review or None
            order.tags = [str(t) for t in (tags or [])]
            self.session.flush()

            if booking.driver_id is not None:
                average = self._driver_average(booking.driver_id)
                driver = self.session.get(Driver, booking.driver_id)
                if driver is not None and average is not None:
                    driver.rating = float(average)
                # tips only go somewhere when a driver did the job
                if tip_amount > 0:
                    order.tip_amount = D(order.tip_amount) + self._transfer_tip(booking, tip_amount)

        log.info("booking %s rated %s", booking.id, rating)
        return order

    def get(self, user_id: int, booking_id: int) -> Order:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id:
            raise AuthorizationError("Not authorized")
        order = self.session.query(Order).filter_by(booking_id=booking_id).one_or_none()
        if order is None or order.rating is None:
            raise NotFoundError("Rating not found")
        return order

    def driver_summary(self, driver_id: int) -> dict:
        driver = self.session.get(Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        reviews = (
            self.session.query(Order)
            .join(Booking, Booking.id == Order.booking_id)
            .filter(Booking.driver_id == driver_id, Order.rating.isnot(None))
            .order_by(Order.completed_at.desc(), Order.id.desc())
            .limit(RECENT_REVIEWS)
            .all()
        )
        return {
            "driver": {
                "id": driver.id,
                "name": driver.name,
                "rating": driver.rating,
                "totalTrips": driver.total_trips,
            },
            "reviews": [
                {
                    "rating": o.rating,
                    "review": o.review,
                    "tags": list(o.tags or []),
                    "completedAt": o.completed_at.isoformat() if o.completed_at else None,
                }
                for o in reviews
            ],
        }
