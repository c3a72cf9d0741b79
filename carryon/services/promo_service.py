# carryon/services/promo_service.py
from __future__ import annotations
import logging
from decimal import Decimal

from sqlalchemy import update, func, or_, select
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ValidationError, NotFoundError, StateConflictError,
    CodeNotFound, CodeInactive, CodeExpired, UsageLimitReached,
    BelowMinimumOrder, AlreadyRedeemed, InvalidCode, SelfReferral, AlreadyReferred,
)
from ..model import (
    Coupon, UserCoupon, Booking, User, Referral,
    DiscountType, ReferralStatus, TransactionType, PaymentStatus,
)
from ..model.types import TERMINAL_STATUSES
from ..utils.dates import utcnow
from ..utils.money import D, round_money, Money
from . import atomic
from .ledger_service import LedgerService

log = logging.getLogger(__name__)


def compute_discount(coupon: Coupon, amount) -> Money:
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = round_money(D(amount) * D(coupon.discount_value) / Decimal("100"))
        if coupon.max_discount is not None and D(coupon.max_discount) > 0:
            discount = min(discount, round_money(coupon.max_discount))
        return discount
    return round_money(coupon.discount_value)


def normalize_code(code) -> str:
    return (code or "").strip().upper()


class PromoService:
    def __init__(self, session, ledger: LedgerService | None = None, referral_reward="5.00"):
        self.session = session
        self.ledger = ledger or LedgerService(session)
        self.referral_reward = round_money(referral_reward)

    # ---- coupon checks -----------------------------------------------------
    def _find_coupon(self, code) -> Coupon:
        code = normalize_code(code)
        if not code:
            raise ValidationError("Promo code is required")
        coupon = self.session.query(Coupon).filter(Coupon.code == code).one_or_none()
        if coupon is None:
            raise CodeNotFound("Invalid promo code")
        return coupon

    def _check_usable(self, coupon: Coupon, user_id: int, order_amount: Money):
        if not coupon.is_active:
            raise CodeInactive("This promo code is no longer active")
        if coupon.expires_at and coupon.expires_at < utcnow():
            raise CodeExpired("This promo code has expired")
        if coupon.used_count >= coupon.usage_limit:
            raise UsageLimitReached("This promo code has reached its usage limit")
        if order_amount < D(coupon.min_order_value):
            raise BelowMinimumOrder(f"Minimum order value is RM {round_money(coupon.min_order_value)}")
        redemption = self.session.get(UserCoupon, (user_id, coupon.id))
        if redemption is not None and redemption.used_at is not None:
            raise AlreadyRedeemed("You have already used this promo code")

    def validate(self, code, user_id: int, order_amount) -> dict:
        order_amount = round_money(order_amount)
        if order_amount < 0:
            raise ValidationError("orderAmount must not be negative")
        coupon = self._find_coupon(code)
        self._check_usable(coupon, user_id, order_amount)
        discount = compute_discount(coupon, order_amount)
        return {
            "couponId": coupon.id,
            "code": coupon.code,
            "description": coupon.description,
            "discountType": coupon.discount_type.value,
            "discountValue": float(coupon.discount_value),
            "calculatedDiscount": float(discount),
        }

    # ---- redemption --------------------------------------------------------
    def _claim_use(self, coupon: Coupon):
        # the WHERE clause is the guard: at the last remaining use only one claimant gets a row
        result = self.session.execute(
            update(Coupon)
            .where(Coupon.id == coupon.id, Coupon.used_count < Coupon.usage_limit)
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise UsageLimitReached("This promo code has reached its usage limit")
        self.session.expire(coupon, ["used_count"])

    def apply(self, code, booking_id: int, user_id: int) -> dict:
        booking = self.session.get(Booking, booking_id)
        if not booking or booking.user_id != user_id:
            raise NotFoundError("Booking not found")
        if booking.status.is_terminal:
            raise StateConflictError(f"Cannot apply a promo code to a {booking.status.value.lower()} booking")
        if booking.promo_code:
            raise StateConflictError("A promo code has already been applied to this booking")
        if booking.payment_status != PaymentStatus.PENDING:
            raise StateConflictError("Promo codes can only be applied before payment")

        coupon = self._find_coupon(code)
        estimated = round_money(booking.estimated_price)
        # re-checked here even after validate(): the code may have expired or run out since
        self._check_usable(coupon, user_id, estimated)
        discount = compute_discount(coupon, estimated)

        try:
            with atomic(self.session):
                # a concurrent pay, cancel or second apply leaves no matching row
                stamped = self.session.execute(
                    update(Booking)
                    .where(Booking.id == booking.id,
                           Booking.promo_code.is_(None),
                           Booking.payment_status == PaymentStatus.PENDING,
                           Booking.status.notin_(TERMINAL_STATUSES))
                    .values(promo_code=coupon.code, discount_amount=discount, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if stamped.rowcount != 1:
                    raise StateConflictError("Booking changed meanwhile, promo code not applied")
                self.session.expire(booking, ["promo_code", "discount_amount", "updated_at"])
                self._claim_use(coupon)
                redemption = self.session.get(UserCoupon, (user_id, coupon.id))
                if redemption is None:
                    redemption = UserCoupon(user_id=user_id, coupon_id=coupon.id)
                    self.session.add(redemption)
                elif redemption.used_at is not None:
                    raise AlreadyRedeemed("You have already used this promo code")
                redemption.booking_id = booking.id
                redemption.used_at = utcnow()
                self.session.flush()
        except IntegrityError:
            # a concurrent apply by the same user inserted the row first
            raise AlreadyRedeemed("You have already used this promo code")

        log.info("coupon %s applied to booking %s discount=%s", coupon.code, booking.id, discount)
        final_price = round_money(max(estimated - discount, Decimal("0")))
        return {"discount": float(discount), "finalPrice": float(final_price)}

    def available_coupons(self, user_id: int) -> list[Coupon]:
        redeemed = select(UserCoupon.coupon_id).where(
            UserCoupon.user_id == user_id, UserCoupon.used_at.isnot(None))
        return (self.session.query(Coupon)
                .filter(Coupon.is_active.is_(True))
                .filter(or_(Coupon.expires_at.is_(None), Coupon.expires_at > utcnow()))
                .filter(Coupon.used_count < Coupon.usage_limit)
                .filter(Coupon.id.notin_(redeemed))
                .order_by(Coupon.created_at.desc(), Coupon.id.desc())
                .all())

    # ---- referrals ---------------------------------------------------------
    def referral_info(self, user_id: int) -> dict:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        referrals = self.session.query(Referral).filter_by(referrer_id=user_id).all()
        completed = [r for r in referrals if r.status == ReferralStatus.COMPLETED]
        total_earned = sum((D(r.reward_amount) for r in completed), Decimal("0"))
        return {
            "referralCode": user.referral_code,
            "totalReferrals": len(referrals),
            "completedReferrals": len(completed),
            "totalEarned": float(round_money(total_earned)),
        }

    def apply_referral(self, code, new_user_id: int) -> Referral:
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Referral code is required")
        referrer = self.session.query(User).filter(func.upper(User.referral_code) == code).one_or_none()
        if referrer is None:
            raise InvalidCode("Invalid referral code")
        if referrer.id == new_user_id:
            raise SelfReferral("You cannot use your own referral code")
        if self.session.query(Referral.id).filter_by(referee_id=new_user_id).first():
            raise AlreadyReferred("You have already used a referral code")

        reward = self.referral_reward
        try:
            with atomic(self.session):
                referral = Referral(
                    referrer_id=referrer.id,
                    referee_id=new_user_id,
                    referral_code=referrer.referral_code,
                    reward_amount=reward,
                    status=ReferralStatus.COMPLETED,
                )
                self.session.add(referral)
                self.session.flush()
                for uid in (referrer.id, new_user_id):
                    self.ledger.credit(uid, reward, TransactionType.REFERRAL_BONUS, "Referral bonus",
                                       reference_id=referral.id)
        except IntegrityError:
            raise AlreadyReferred("You have already used a referral code")

        log.info("referral %s: referrer=%s referee=%s reward=%s", referral.id, referrer.id, new_user_id, reward)
        return referral
