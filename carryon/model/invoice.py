# carryon/model/invoice.py
from ..extensions import db
from ..utils.dates import utcnow, iso


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)   # e.g. "CO-20260223-4821"

    # Money snapshot, never updated after insert
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False)
    currency = db.Column(db.String(8), nullable=False)

    issued_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    booking = db.relationship("Booking", back_populates="invoice")

    def as_api(self):
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "userId": self.user_id,
            "invoiceNumber": self.invoice_number,
            "subtotal": float(self.subtotal or 0),
            "tax": float(self.tax or 0),
            "discount": float(self.discount or 0),
            "total": float(self.total or 0),
            "taxRate": float(self.tax_rate or 0),
            "currency": self.currency,
            "issuedAt": iso(self.issued_at),
        }
