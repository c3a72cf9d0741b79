from flask import Flask

from .extensions import db, jwt, cors, migrate
from .config import Config
from .utils.api import ok, err


def create_app(config_object=None, **overrides):
    """
    Build an isolated app. Tests pass TestConfig plus overrides, so every
    test case gets its own engine and store.
    """
    app = Flask(__name__, instance_relative_config=True)

    config_object = config_object or Config
    app.config.from_object(config_object)
    config_object.init_app(app)
    app.config.update(overrides)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    migrate.init_app(app, db)

    _register_jwt_handlers()

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .booking import bp as booking_bp; app.register_blueprint(booking_bp)
    from .promo import bp as promo_bp; app.register_blueprint(promo_bp)
    from .rating import bp as rating_bp; app.register_blueprint(rating_bp)
    from .wallet import bp as wallet_bp; app.register_blueprint(wallet_bp)
    from .invoice import bp as invoice_bp; app.register_blueprint(invoice_bp)
    from .vehicle import bp as vehicle_bp; app.register_blueprint(vehicle_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return ok({"service": "carryon"}, message="API running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    app.logger.debug("blueprints: %s", sorted(app.blueprints.keys()))
    return app


def _register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return err("Authentication required", 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return err("Invalid or expired token", 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return err("Invalid or expired token", 401)
