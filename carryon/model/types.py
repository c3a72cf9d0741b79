# carryon/model/types.py
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    SEARCHING_DRIVER = "SEARCHING_DRIVER"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    DRIVER_ARRIVED = "DRIVER_ARRIVED"
    PICKUP_DONE = "PICKUP_DONE"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = (BookingStatus.DELIVERED, BookingStatus.CANCELLED)

# forward progression; CANCELLED hangs off every non-terminal state
BOOKING_FLOW = (
    BookingStatus.PENDING,
    BookingStatus.SEARCHING_DRIVER,
    BookingStatus.DRIVER_ASSIGNED,
    BookingStatus.DRIVER_ARRIVED,
    BookingStatus.PICKUP_DONE,
    BookingStatus.IN_TRANSIT,
    BookingStatus.DELIVERED,
)


def _build_transitions():
    table = {}
    for i, status in enumerate(BOOKING_FLOW):
        if status.is_terminal:
            table[status] = frozenset()
        else:
            # same-state allowed so a driver can refresh the ETA
            table[status] = frozenset(BOOKING_FLOW[i:]) | {BookingStatus.CANCELLED}
    table[BookingStatus.CANCELLED] = frozenset()
    return table


BOOKING_TRANSITIONS = _build_transitions()


class PaymentMethod(str, Enum):
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"
    WALLET = "WALLET"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class TransactionType(str, Enum):
    TOP_UP = "TOP_UP"
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"
    REFERRAL_BONUS = "REFERRAL_BONUS"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


class ReferralStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class AddressType(str, Enum):
    HOME = "HOME"
    OFFICE = "OFFICE"
    OTHER = "OTHER"


def parse_enum(enum_cls, value, default=None):
    """Case-insensitive lookup; returns None for unknown values."""
    if value is None or value == "":
        return default
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        return None
