# ------ carryon/model/__init__.py ------

from .user import User, Driver
from .address import Address
from .vehicle import Vehicle
from .booking import Booking
from .wallet import Wallet, WalletTransaction
from .coupon import Coupon, UserCoupon
from .referral import Referral
from .order import Order
from .invoice import Invoice
from .types import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionType,
    DiscountType,
    ReferralStatus,
    AddressType,
)

__all__ = [
    "User",
    "Driver",
    "Address",
    "Vehicle",
    "Booking",
    "Wallet",
    "WalletTransaction",
    "Coupon",
    "UserCoupon",
    "Referral",
    "Order",
    "Invoice",
    "BookingStatus",
    "PaymentMethod",
    "PaymentStatus",
    "TransactionType",
    "DiscountType",
    "ReferralStatus",
    "AddressType",
]
