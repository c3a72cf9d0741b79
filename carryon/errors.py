# carryon/errors.py
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException

from .utils.api import api_error


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# ---- error kinds -----------------------------------------------------------

class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class StateConflictError(AppError):
    status_code = 409


class InsufficientFundsError(AppError):
    status_code = 400


# ---- promo / referral ------------------------------------------------------

class CodeNotFound(NotFoundError):
    pass


class CodeInactive(StateConflictError):
    pass


class CodeExpired(StateConflictError):
    pass


class UsageLimitReached(StateConflictError):
    pass


class BelowMinimumOrder(ValidationError):
    pass


class AlreadyRedeemed(StateConflictError):
    pass


class InvalidCode(NotFoundError):
    pass


class SelfReferral(ValidationError):
    pass


class AlreadyReferred(StateConflictError):
    pass


# ---- booking lifecycle -----------------------------------------------------

class InvalidOtp(ValidationError):
    pass


class AlreadyDelivered(StateConflictError):
    pass


class AlreadyCancelled(StateConflictError):
    pass


class NotCancellable(StateConflictError):
    pass


class IllegalTransition(StateConflictError):
    pass


class NotDelivered(StateConflictError):
    pass


class AlreadyPaid(StateConflictError):
    pass


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e):
        r = jsonify(api_error(e.message))
        r.status_code = e.status_code
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        r = jsonify(api_error(e.description if e.code != 404 else "Not found"))
        r.status_code = e.code or 500
        return r

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        current_app.logger.exception("Unhandled error: %s", e)
        r = jsonify(api_error("Internal server error"))
        r.status_code = 500
        return r
