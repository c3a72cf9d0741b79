# carryon/model/wallet.py
from ..extensions import db
from ..utils.dates import utcnow, iso
from .types import TransactionType


class Wallet(db.Model):
    __tablename__ = "wallet"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, unique=True, index=True)
    # only ever changed through LedgerService together with a WalletTransaction
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    transactions = db.relationship(
        "WalletTransaction",
        backref="wallet",
        lazy="dynamic",
        order_by="WalletTransaction.id.desc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "balance": float(self.balance or 0),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class WalletTransaction(db.Model):
    __tablename__ = "wallet_transaction"

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey("wallet.id"), nullable=False, index=True)
    type = db.Column(db.Enum(TransactionType, native_enum=False, length=32), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)   # signed: credits > 0, debits < 0
    description = db.Column(db.String(255), nullable=False, default="")
    reference_id = db.Column(db.String(64), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "walletId": self.wallet_id,
            "type": self.type.value,
            "amount": float(self.amount or 0),
            "description": self.description,
            "referenceId": self.reference_id,
            "createdAt": iso(self.created_at),
        }
