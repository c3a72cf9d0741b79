"""
Unit Tests for promo codes and referrals

Tests cover:
1. Discount computation (percentage, cap, flat, rounding)
2. Validation failures
3. Atomic redemption and the usage-limit race
4. Coupon listing
5. Referral crediting
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from carryon.errors import (
    CodeNotFound, CodeInactive, CodeExpired, UsageLimitReached, BelowMinimumOrder,
    AlreadyRedeemed, InvalidCode, SelfReferral, AlreadyReferred, NotFoundError,
    StateConflictError, ValidationError,
)
from carryon.model import (
    Coupon, UserCoupon, Referral, Wallet, DiscountType, ReferralStatus, TransactionType, BookingStatus,
    PaymentMethod, PaymentStatus,
)
from carryon.services.promo_service import PromoService, compute_discount


@pytest.fixture
def promo(session, ledger):
    return PromoService(session, ledger)


class TestComputeDiscount:
    """Tests for the discount arithmetic."""

    def test_percentage(self):
        c = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("10"))
        assert compute_discount(c, Decimal("100")) == Decimal("10.00")

    def test_percentage_clamped_to_cap(self):
        c = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("50"),
                   max_discount=Decimal("15"))
        assert compute_discount(c, Decimal("100")) == Decimal("15.00")

    def test_percentage_rounds_half_up(self):
        c = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("12.5"))
        # 12.5% of 10.10 = 1.2625 -> 1.26 ; of 10.20 = 1.275 -> 1.28
        assert compute_discount(c, Decimal("10.10")) == Decimal("1.26")
        assert compute_discount(c, Decimal("10.20")) == Decimal("1.28")

    def test_flat_is_verbatim(self):
        c = Coupon(discount_type=DiscountType.FLAT, discount_value=Decimal("7.5"))
        assert compute_discount(c, Decimal("1000")) == Decimal("7.50")


class TestValidate:
    """Tests for promo validation."""

    def test_valid_code_case_insensitive(self, promo, make_user, make_coupon):
        user = make_user()
        make_coupon(code="SAVE10", value="10")
        result = promo.validate("save10", user.id, Decimal("80"))
        assert result["code"] == "SAVE10"
        assert result["calculatedDiscount"] == 8.0

    def test_unknown_code(self, promo, make_user):
        with pytest.raises(CodeNotFound):
            promo.validate("NOPE", make_user().id, Decimal("10"))

    def test_inactive_code(self, promo, make_user, make_coupon):
        make_coupon(code="OFF", is_active=False)
        with pytest.raises(CodeInactive):
            promo.validate("OFF", make_user().id, Decimal("10"))

    def test_expired_code(self, promo, make_user, make_coupon):
        make_coupon(code="OLD", expires_in=timedelta(days=-1))
        with pytest.raises(CodeExpired):
            promo.validate("OLD", make_user().id, Decimal("10"))

    def test_exhausted_code(self, promo, make_user, make_coupon):
        make_coupon(code="GONE", usage_limit=2, used_count=2)
        with pytest.raises(UsageLimitReached):
            promo.validate("GONE", make_user().id, Decimal("10"))

    def test_below_minimum_order(self, promo, make_user, make_coupon):
        make_coupon(code="BIG", min_order="50")
        with pytest.raises(BelowMinimumOrder):
            promo.validate("BIG", make_user().id, Decimal("49.99"))

    def test_already_redeemed(self, promo, make_user, make_coupon, session):
        user = make_user()
        coupon = make_coupon(code="ONCE")
        from carryon.utils.dates import utcnow
        session.add(UserCoupon(user_id=user.id, coupon_id=coupon.id, used_at=utcnow()))
        session.commit()
        with pytest.raises(AlreadyRedeemed):
            promo.validate("ONCE", user.id, Decimal("10"))

    def test_missing_code(self, promo, make_user):
        with pytest.raises(ValidationError):
            promo.validate("  ", make_user().id, Decimal("10"))


class TestApply:
    """Tests for atomic redemption."""

    def test_apply_save10(self, promo, make_user, make_booking, make_coupon, session):
        user = make_user()
        booking = make_booking(user, estimated_price="100.00")
        coupon = make_coupon(code="SAVE10", value="10")

        result = promo.apply("SAVE10", booking.id, user.id)

        assert result == {"discount": 10.0, "finalPrice": 90.0}
        assert booking.promo_code == "SAVE10"
        assert booking.discount_amount == Decimal("10.00")
        assert booking.working_price_dec() == Decimal("90.00")
        assert coupon.used_count == 1
        redemption = session.get(UserCoupon, (user.id, coupon.id))
        assert redemption.used_at is not None
        assert redemption.booking_id == booking.id

    def test_second_redemption_by_same_user_fails(self, promo, make_user, make_booking, make_coupon):
        user = make_user()
        first, second = make_booking(user), make_booking(user)
        coupon = make_coupon(code="ONCE")
        promo.apply("ONCE", first.id, user.id)

        with pytest.raises(AlreadyRedeemed):
            promo.apply("ONCE", second.id, user.id)
        assert coupon.used_count == 1
        assert second.discount_amount == Decimal("0.00")

    def test_last_use_admits_one_redeemer(self, promo, make_user, make_booking, make_coupon):
        alice, bob = make_user(), make_user()
        a_booking, b_booking = make_booking(alice), make_booking(bob)
        coupon = make_coupon(code="LAST", usage_limit=1)

        promo.apply("LAST", a_booking.id, alice.id)
        with pytest.raises(UsageLimitReached):
            promo.apply("LAST", b_booking.id, bob.id)

        assert coupon.used_count == 1
        assert b_booking.promo_code is None

    def test_stale_validation_loses_the_race(self, promo, make_user, make_booking, make_coupon, monkeypatch):
        """Both callers pass validation before either commits; the counter update decides."""
        alice, bob = make_user(), make_user()
        a_booking, b_booking = make_booking(alice), make_booking(bob)
        coupon = make_coupon(code="RACE", usage_limit=1)

        promo.apply("RACE", a_booking.id, alice.id)
        # bob's validation read the coupon before alice committed
        monkeypatch.setattr(promo, "_check_usable", lambda *a, **k: None)

        with pytest.raises(UsageLimitReached):
            promo.apply("RACE", b_booking.id, bob.id)
        assert coupon.used_count == coupon.usage_limit == 1
        assert b_booking.promo_code is None
        assert b_booking.discount_amount == Decimal("0.00")

    def test_apply_to_foreign_booking(self, promo, make_user, make_booking, make_coupon):
        owner, other = make_user(), make_user()
        booking = make_booking(owner)
        make_coupon(code="SAVE10")
        with pytest.raises(NotFoundError):
            promo.apply("SAVE10", booking.id, other.id)

    def test_apply_twice_to_same_booking(self, promo, make_user, make_booking, make_coupon):
        user = make_user()
        booking = make_booking(user)
        make_coupon(code="A")
        make_coupon(code="B")
        promo.apply("A", booking.id, user.id)
        with pytest.raises(StateConflictError):
            promo.apply("B", booking.id, user.id)

    def test_apply_to_delivered_booking(self, promo, make_user, make_booking, make_coupon):
        user = make_user()
        booking = make_booking(user, status=BookingStatus.DELIVERED)
        make_coupon(code="LATE")
        with pytest.raises(StateConflictError):
            promo.apply("LATE", booking.id, user.id)

    def test_apply_after_payment_rejected(self, promo, make_user, make_booking, make_coupon, session):
        user = make_user()
        booking = make_booking(user, payment_method=PaymentMethod.WALLET,
                               payment_status=PaymentStatus.COMPLETED, final_price="100.00")
        coupon = make_coupon(code="SAVE10")

        with pytest.raises(StateConflictError, match="before payment"):
            promo.apply("SAVE10", booking.id, user.id)

        assert coupon.used_count == 0
        assert booking.promo_code is None
        assert booking.discount_amount == Decimal("0.00")
        assert session.get(UserCoupon, (user.id, coupon.id)) is None

    def test_apply_revalidates_minimum_order(self, promo, make_user, make_booking, make_coupon):
        user = make_user()
        booking = make_booking(user, estimated_price="20.00")
        make_coupon(code="MIN50", min_order="50")
        with pytest.raises(BelowMinimumOrder):
            promo.apply("MIN50", booking.id, user.id)


class TestAvailableCoupons:
    """Tests for coupon listing."""

    def test_lists_only_usable_unredeemed(self, promo, make_user, make_booking, make_coupon):
        user = make_user()
        make_coupon(code="OK1")
        make_coupon(code="OFF", is_active=False)
        make_coupon(code="OLD", expires_in=timedelta(days=-1))
        make_coupon(code="FULL", usage_limit=1, used_count=1)
        make_coupon(code="USED")
        make_coupon(code="FOREVER", expires_in=None)
        promo.apply("USED", make_booking(user).id, user.id)

        codes = {c.code for c in promo.available_coupons(user.id)}
        assert codes == {"OK1", "FOREVER"}


class TestReferral:
    """Tests for referral crediting."""

    def test_referral_credits_both_wallets(self, promo, ledger, make_user, session):
        referrer = make_user(referral_code="ALICE123")
        referee = make_user()

        referral = promo.apply_referral("alice123", referee.id)

        assert referral.status == ReferralStatus.COMPLETED
        assert referral.reward_amount == Decimal("5.00")
        for uid in (referrer.id, referee.id):
            wallet = ledger.get_wallet(uid, create=False)
            assert wallet.balance == Decimal("5.00")
            tx = wallet.transactions.one()
            assert tx.type == TransactionType.REFERRAL_BONUS
            assert ledger.balance_matches_log(uid)

    def test_second_referral_rejected(self, promo, ledger, make_user):
        make_user(referral_code="ALICE123")
        make_user(referral_code="BOB45678")
        referee = make_user()

        promo.apply_referral("ALICE123", referee.id)
        with pytest.raises(AlreadyReferred):
            promo.apply_referral("BOB45678", referee.id)
        assert ledger.get_wallet(referee.id).balance == Decimal("5.00")

    def test_self_referral(self, promo, make_user):
        user = make_user(referral_code="SELF0001")
        with pytest.raises(SelfReferral):
            promo.apply_referral("SELF0001", user.id)

    def test_unknown_code(self, promo, make_user):
        with pytest.raises(InvalidCode):
            promo.apply_referral("NOBODY00", make_user().id)

    def test_partial_credit_rolled_back(self, promo, make_user, session, monkeypatch):
        """A failure while crediting the second wallet leaves no trace at all."""
        referrer = make_user(referral_code="ALICE123")
        referee = make_user()
        real_credit = promo.ledger.credit
        calls = {"n": 0}

        def flaky_credit(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("store went away")
            return real_credit(*args, **kwargs)

        monkeypatch.setattr(promo.ledger, "credit", flaky_credit)
        with pytest.raises(RuntimeError):
            promo.apply_referral("ALICE123", referee.id)

        assert session.query(Referral).count() == 0
        for uid in (referrer.id, referee.id):
            wallet = session.query(Wallet).filter_by(user_id=uid).one_or_none()
            assert wallet is None or wallet.balance == Decimal("0.00")

    def test_referral_info(self, promo, make_user):
        referrer = make_user(referral_code="ALICE123")
        promo.apply_referral("ALICE123", make_user().id)
        promo.apply_referral("ALICE123", make_user().id)

        info = promo.referral_info(referrer.id)
        assert info == {
            "referralCode": "ALICE123",
            "totalReferrals": 2,
            "completedReferrals": 2,
            "totalEarned": 10.0,
        }
