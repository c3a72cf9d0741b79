# carryon/services/ledger_service.py
from __future__ import annotations
import logging
from decimal import Decimal

from sqlalchemy import update, func

from ..errors import (
    ValidationError, NotFoundError, InsufficientFundsError,
    AlreadyPaid, StateConflictError,
)
from ..model import Wallet, WalletTransaction, Booking, TransactionType, PaymentMethod, PaymentStatus
from ..model.types import TERMINAL_STATUSES
from ..utils.money import D, round_money, Money
from ..utils.dates import utcnow
from . import atomic

log = logging.getLogger(__name__)


class LedgerService:
    """
    Wallet balances plus their append-only transaction log.

    credit()/debit() never commit: they join whatever atomic unit the caller
    has open, so a booking update and the money movement it implies land
    together. The balance is changed with a single conditional UPDATE, which
    keeps concurrent debits from overdrawing without any in-process locking.
    """

    def __init__(self, session, max_topup="1000.00"):
        self.session = session
        self.max_topup = D(max_topup)

    # ---- wallet lookup -----------------------------------------------------
    def get_wallet(self, user_id: int, create: bool = True) -> Wallet | None:
        wallet = self.session.query(Wallet).filter_by(user_id=user_id).one_or_none()
        if wallet is None and create:
            wallet = Wallet(user_id=user_id, balance=Decimal("0"))
            self.session.add(wallet)
            self.session.flush()
        return wallet

    # ---- balance mutations -------------------------------------------------
    def credit(self, user_id: int, amount, tx_type: TransactionType, description: str,
               reference_id=None) -> WalletTransaction:
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        wallet = self.get_wallet(user_id)
        self.session.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id)
            .values(balance=Wallet.balance + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return self._append(wallet, amount, tx_type, description, reference_id)

    def debit(self, user_id: int, amount, tx_type: TransactionType, description: str,
              reference_id=None, wallet: Wallet | None = None) -> WalletTransaction:
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Debit amount must be positive")
        wallet = wallet or self.get_wallet(user_id)
        result = self.session.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientFundsError("Insufficient wallet balance")
        return self._append(wallet, -amount, tx_type, description, reference_id)

    def _append(self, wallet, signed_amount: Money, tx_type, description, reference_id):
        tx = WalletTransaction(
            wallet_id=wallet.id,
            type=tx_type,
            amount=signed_amount,
            description=description,
            reference_id=str(reference_id) if reference_id is not None else None,
        )
        self.session.add(tx)
        self.session.flush()
        # the UPDATE bypassed the identity map; reload on next access
        self.session.expire(wallet, ["balance", "updated_at"])
        return tx

    # ---- business operations ----------------------------------------------
    def top_up(self, user_id: int, amount, reference=None) -> Wallet:
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Invalid amount")
        if amount > self.max_topup:
            raise ValidationError(f"Maximum top-up is RM {self.max_topup}")
        with atomic(self.session):
            self.credit(user_id, amount, TransactionType.TOP_UP, "Wallet top-up", reference)
        log.info("wallet top-up user=%s amount=%s", user_id, amount)
        return self.get_wallet(user_id)

    def pay_booking(self, user_id: int, booking_id: int) -> tuple[Wallet, Money]:
        booking = self.session.get(Booking, booking_id)
        if not booking or booking.user_id != user_id:
            raise NotFoundError("Booking not found")
        if booking.status.is_terminal:
            raise StateConflictError(f"Cannot pay for a {booking.status.value.lower()} booking")
        if booking.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            raise AlreadyPaid("Booking has already been paid")

        with atomic(self.session):
            # only one payer can move the booking out of PENDING
            claimed = self.session.execute(
                update(Booking)
                .where(Booking.id == booking.id,
                       Booking.payment_status == PaymentStatus.PENDING,
                       Booking.status.notin_(TERMINAL_STATUSES))
                .values(payment_method=PaymentMethod.WALLET,
                        payment_status=PaymentStatus.COMPLETED,
                        updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            self.session.refresh(booking)
            if claimed.rowcount != 1:
                if booking.status.is_terminal:
                    raise StateConflictError(f"Cannot pay for a {booking.status.value.lower()} booking")
                raise AlreadyPaid("Booking has already been paid")

            amount = booking.working_price_dec()
            wallet = self.get_wallet(user_id)
            if amount > 0:
                self.debit(user_id, amount, TransactionType.PAYMENT, "Payment for booking",
                           reference_id=booking.id, wallet=wallet)
            booking.final_price = amount
        log.info("booking %s paid from wallet amount=%s", booking.id, amount)
        return self.get_wallet(user_id), amount

    # ---- reads -------------------------------------------------------------
    def summary(self, user_id: int, recent: int = 20):
        wallet = self.get_wallet(user_id)
        self.session.commit()
        return wallet, wallet.transactions.limit(recent).all()

    def transactions(self, user_id: int, page: int = 1, limit: int = 20):
        wallet = self.get_wallet(user_id, create=False)
        if wallet is None:
            return [], 0
        q = self.session.query(WalletTransaction).filter_by(wallet_id=wallet.id)
        total = q.count()
        items = (q.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
                  .offset((page - 1) * limit).limit(limit).all())
        return items, total

    def balance_matches_log(self, user_id: int) -> bool:
        """balance == sum(transactions); used by audits and tests."""
        wallet = self.get_wallet(user_id, create=False)
        if wallet is None:
            return True
        total = (self.session.query(func.coalesce(func.sum(WalletTransaction.amount), 0))
                 .filter(WalletTransaction.wallet_id == wallet.id).scalar())
        return round_money(D(total)) == round_money(D(wallet.balance))
