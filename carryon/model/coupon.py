# --- carryon/model/coupon.py ---

from ..extensions import db
from ..utils.dates import utcnow, iso
from .types import DiscountType


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case
    description = db.Column(db.String(255), nullable=False, default="")

    discount_type = db.Column(db.Enum(DiscountType, native_enum=False, length=16), nullable=False,
                              default=DiscountType.PERCENTAGE)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    max_discount = db.Column(db.Numeric(12, 2), nullable=True)     # cap for PERCENTAGE
    min_order_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    usage_limit = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    redemptions = db.relationship("UserCoupon", back_populates="coupon", lazy="select")

    __table_args__ = (
        db.CheckConstraint("used_count <= usage_limit", name="ck_coupon_used_within_limit"),
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discountType": self.discount_type.value,
            "discountValue": float(self.discount_value or 0),
            "maxDiscount": float(self.max_discount) if self.max_discount is not None else None,
            "minOrderValue": float(self.min_order_value or 0),
            "expiresAt": iso(self.expires_at),
        }


class UserCoupon(db.Model):
    __tablename__ = "user_coupon"

    # one row per (user, coupon): at most one redemption
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id", ondelete="CASCADE"), primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=True)
    used_at = db.Column(db.DateTime, nullable=True)

    coupon = db.relationship("Coupon", back_populates="redemptions")
