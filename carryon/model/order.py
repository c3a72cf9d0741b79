# carryon/model/order.py
from ..extensions import db
from ..utils.dates import utcnow, iso


class Order(db.Model):
    """Completion record of a delivered booking; carries the customer's rating."""
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=False, unique=True, index=True)
    rating = db.Column(db.Integer, nullable=True)
    review = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    tip_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    completed_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    booking = db.relationship("Booking", back_populates="order")

    def as_api(self):
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "rating": self.rating,
            "review": self.review,
            "tags": list(self.tags or []),
            "tipAmount": float(self.tip_amount or 0),
            "completedAt": iso(self.completed_at),
        }
