"""
Unit Tests for the wallet ledger

Tests cover:
1. Lazy wallet creation
2. Credit / debit with paired transaction entries
3. Insufficient funds
4. Top-up limits
5. Paying a booking from the wallet
6. balance == sum(transactions) after every operation
"""

from decimal import Decimal

import pytest

from carryon.errors import (
    InsufficientFundsError, ValidationError, NotFoundError, AlreadyPaid, StateConflictError,
)
from carryon.model import (
    Wallet, WalletTransaction, TransactionType, PaymentMethod, PaymentStatus, BookingStatus,
)


class TestWalletLookup:
    """Tests for locate-or-create."""

    def test_wallet_created_lazily(self, ledger, make_user, session):
        user = make_user()
        assert session.query(Wallet).filter_by(user_id=user.id).count() == 0

        wallet = ledger.get_wallet(user.id)
        session.commit()

        assert wallet.id is not None
        assert wallet.balance == Decimal("0")
        assert session.query(Wallet).filter_by(user_id=user.id).count() == 1

    def test_get_wallet_without_create(self, ledger, make_user):
        user = make_user()
        assert ledger.get_wallet(user.id, create=False) is None


class TestCreditDebit:
    """Tests for the balance mutations."""

    def test_credit_appends_one_entry(self, ledger, make_user, session):
        user = make_user()
        tx = ledger.credit(user.id, "25.50", TransactionType.TOP_UP, "Wallet top-up")
        session.commit()

        wallet = ledger.get_wallet(user.id)
        assert wallet.balance == Decimal("25.50")
        assert tx.amount == Decimal("25.50")
        assert wallet.transactions.count() == 1
        assert ledger.balance_matches_log(user.id)

    def test_debit_records_negative_amount(self, ledger, make_user, session):
        user = make_user()
        ledger.credit(user.id, "50", TransactionType.TOP_UP, "Wallet top-up")
        tx = ledger.debit(user.id, "20", TransactionType.PAYMENT, "Payment for booking", reference_id=7)
        session.commit()

        assert tx.amount == Decimal("-20.00")
        assert tx.reference_id == "7"
        assert ledger.get_wallet(user.id).balance == Decimal("30.00")
        assert ledger.balance_matches_log(user.id)

    def test_debit_beyond_balance_fails_without_entry(self, ledger, make_user, session):
        user = make_user()
        ledger.credit(user.id, "10", TransactionType.TOP_UP, "Wallet top-up")
        session.commit()

        with pytest.raises(InsufficientFundsError):
            ledger.debit(user.id, "10.01", TransactionType.PAYMENT, "Payment for booking")
        session.rollback()

        wallet = ledger.get_wallet(user.id)
        assert wallet.balance == Decimal("10.00")
        assert session.query(WalletTransaction).filter_by(wallet_id=wallet.id).count() == 1

    def test_debit_exact_balance_allowed(self, ledger, make_user, session):
        user = make_user()
        ledger.credit(user.id, "10", TransactionType.TOP_UP, "Wallet top-up")
        ledger.debit(user.id, "10", TransactionType.PAYMENT, "Payment for booking")
        session.commit()
        assert ledger.get_wallet(user.id).balance == Decimal("0.00")

    def test_non_positive_amounts_rejected(self, ledger, make_user):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.credit(user.id, "0", TransactionType.TOP_UP, "Wallet top-up")
        with pytest.raises(ValidationError):
            ledger.debit(user.id, "-5", TransactionType.PAYMENT, "Payment")


class TestTopUp:
    """Tests for wallet top-up."""

    def test_top_up_commits(self, ledger, make_user, session):
        user = make_user()
        wallet = ledger.top_up(user.id, "200")
        assert wallet.balance == Decimal("200.00")
        tx = wallet.transactions.first()
        assert tx.type == TransactionType.TOP_UP

    def test_top_up_limit(self, ledger, make_user):
        user = make_user()
        ledger.top_up(user.id, "1000")
        with pytest.raises(ValidationError):
            ledger.top_up(user.id, "1000.01")

    def test_top_up_rejects_zero(self, ledger, make_user):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.top_up(user.id, "0")


class TestPayBooking:
    """Tests for paying a booking from the wallet."""

    def test_pay_debits_working_price(self, ledger, make_user, make_booking):
        user = make_user()
        booking = make_booking(user, estimated_price="100.00", discount="10.00")
        ledger.top_up(user.id, "150")

        wallet, amount = ledger.pay_booking(user.id, booking.id)

        assert amount == Decimal("90.00")
        assert wallet.balance == Decimal("60.00")
        assert booking.payment_method == PaymentMethod.WALLET
        assert booking.payment_status == PaymentStatus.COMPLETED
        assert booking.final_price == Decimal("90.00")
        assert ledger.balance_matches_log(user.id)

    def test_pay_with_insufficient_balance_leaves_booking_untouched(self, ledger, make_user, make_booking):
        user = make_user()
        booking = make_booking(user, estimated_price="100.00")
        ledger.top_up(user.id, "20")

        with pytest.raises(InsufficientFundsError):
            ledger.pay_booking(user.id, booking.id)

        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.payment_method == PaymentMethod.CASH
        assert ledger.get_wallet(user.id).balance == Decimal("20.00")

    def test_cannot_pay_twice(self, ledger, make_user, make_booking):
        user = make_user()
        booking = make_booking(user, estimated_price="30.00")
        ledger.top_up(user.id, "100")
        ledger.pay_booking(user.id, booking.id)

        with pytest.raises(AlreadyPaid):
            ledger.pay_booking(user.id, booking.id)
        assert ledger.get_wallet(user.id).balance == Decimal("70.00")

    def test_cannot_pay_for_foreign_booking(self, ledger, make_user, make_booking):
        owner, other = make_user(), make_user()
        booking = make_booking(owner)
        ledger.top_up(other.id, "500")
        with pytest.raises(NotFoundError):
            ledger.pay_booking(other.id, booking.id)

    def test_fully_discounted_booking_settles_without_debit(self, ledger, make_user, make_booking, session):
        user = make_user()
        booking = make_booking(user, estimated_price="20.00", discount="20.00")

        wallet, amount = ledger.pay_booking(user.id, booking.id)

        assert amount == Decimal("0.00")
        assert booking.payment_status == PaymentStatus.COMPLETED
        assert booking.payment_method == PaymentMethod.WALLET
        assert booking.charged_price_dec() == Decimal("0.00")
        assert wallet.balance == Decimal("0.00")
        assert session.query(WalletTransaction).filter_by(wallet_id=wallet.id).count() == 0

    def test_cannot_pay_for_cancelled_booking(self, ledger, make_user, make_booking):
        user = make_user()
        booking = make_booking(user, status=BookingStatus.CANCELLED)
        ledger.top_up(user.id, "500")
        with pytest.raises(StateConflictError):
            ledger.pay_booking(user.id, booking.id)


class TestHistory:
    """Tests for the paginated transaction history."""

    def test_transactions_paginated_newest_first(self, ledger, make_user):
        user = make_user()
        for amount in ("1", "2", "3"):
            ledger.top_up(user.id, amount)

        items, total = ledger.transactions(user.id, page=1, limit=2)
        assert total == 3
        assert [t.amount for t in items] == [Decimal("3.00"), Decimal("2.00")]

        items, _ = ledger.transactions(user.id, page=2, limit=2)
        assert [t.amount for t in items] == [Decimal("1.00")]

    def test_no_wallet_no_history(self, ledger, make_user):
        user = make_user()
        assert ledger.transactions(user.id) == ([], 0)
