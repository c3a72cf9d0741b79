# carryon/model/referral.py
from ..extensions import db
from ..utils.dates import utcnow, iso
from .types import ReferralStatus


class Referral(db.Model):
    __tablename__ = "referral"

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    # a user can be referred once, whoever referred them
    referee_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, unique=True)
    referral_code = db.Column(db.String(16), nullable=False)
    reward_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.Enum(ReferralStatus, native_enum=False, length=16), nullable=False,
                       default=ReferralStatus.COMPLETED)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def as_api(self):
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "refereeId": self.referee_id,
            "referralCode": self.referral_code,
            "rewardAmount": float(self.reward_amount or 0),
            "status": self.status.value,
            "createdAt": iso(self.created_at),
        }
