import os
from datetime import timedelta


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # money / business constants
    INVOICE_TAX_RATE = float(os.environ.get("INVOICE_TAX_RATE", "0.06"))  # 6% SST
    INVOICE_CURRENCY = os.environ.get("INVOICE_CURRENCY", "MYR")
    INVOICE_PREFIX = "CO"
    REFERRAL_REWARD = os.environ.get("REFERRAL_REWARD", "5.00")
    WALLET_MAX_TOPUP = os.environ.get("WALLET_MAX_TOPUP", "1000.00")
    WALLET_RECENT_TRANSACTIONS = 20
    DEFAULT_ASSIGNED_ETA_MINUTES = 10

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'carryon.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    JWT_SECRET_KEY = "carryon-test-secret-key-0123456789abcdef"

    @staticmethod
    def init_app(app):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
