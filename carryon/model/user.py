# --- carryon/model/user.py ---
import random
import string

from sqlalchemy.sql import func
from ..extensions import db


def generate_referral_code():
    chars = string.ascii_uppercase + string.digits
    return "".join(random.choices(chars, k=8))


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False, default="")
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=False, default="")
    referral_code = db.Column(db.String(16), unique=True, nullable=False, index=True, default=generate_referral_code)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }


class Driver(db.Model):
    __tablename__ = "driver"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False)
    phone = db.Column(db.String(50), nullable=False, default="")
    photo = db.Column(db.String(1024), nullable=True)
    rating = db.Column(db.Float, nullable=False, default=0.0)
    total_trips = db.Column(db.Integer, nullable=False, default=0)
    vehicle_number = db.Column(db.String(32), nullable=False, default="")
    vehicle_model = db.Column(db.String(120), nullable=False, default="")

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "photo": self.photo,
            "rating": self.rating,
            "totalTrips": self.total_trips,
            "vehicleNumber": self.vehicle_number,
            "vehicleModel": self.vehicle_model,
        }
