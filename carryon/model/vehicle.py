# carryon/model/vehicle.py
from ..extensions import db


class Vehicle(db.Model):
    __tablename__ = "vehicle"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")
    capacity = db.Column(db.String(64), nullable=False, default="")
    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_per_km = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    icon_name = db.Column(db.String(64), nullable=False, default="")
    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "capacity": self.capacity,
            "basePrice": float(self.base_price or 0),
            "pricePerKm": float(self.price_per_km or 0),
            "iconName": self.icon_name,
            "isAvailable": self.is_available,
        }
