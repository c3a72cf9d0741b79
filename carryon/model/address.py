# carryon/model/address.py
from ..extensions import db
from .types import AddressType


class Address(db.Model):
    __tablename__ = "address"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    label = db.Column(db.String(120), nullable=False, default="")
    address = db.Column(db.String(512), nullable=False, default="")
    landmark = db.Column(db.String(255), nullable=False, default="")
    latitude = db.Column(db.Float, nullable=False, default=0.0)
    longitude = db.Column(db.Float, nullable=False, default=0.0)
    contact_name = db.Column(db.String(180), nullable=False, default="")
    contact_phone = db.Column(db.String(50), nullable=False, default="")
    type = db.Column(db.Enum(AddressType, native_enum=False, length=16), nullable=False, default=AddressType.OTHER)

    def as_api(self):
        return {
            "id": self.id,
            "label": self.label,
            "address": self.address,
            "landmark": self.landmark,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "contactName": self.contact_name,
            "contactPhone": self.contact_phone,
            "type": self.type.value if self.type else None,
        }
