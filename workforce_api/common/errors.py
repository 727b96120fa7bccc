# workforce_api/common/errors.py
from flask import Blueprint, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from workforce_api.common.http import fail
from workforce_api.extensions import db

bp_errors = Blueprint("errors", __name__)


class APIError(Exception):
    """Base domain error; rendered into the failure envelope by the handlers below."""
    status_code = 400
    code = "error"

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    status_code = 400
    code = "validation_error"


class NotFoundError(APIError):
    status_code = 404
    code = "not_found"


class StateConflictError(APIError):
    status_code = 400
    code = "state_conflict"


class AuthorizationError(APIError):
    status_code = 403
    code = "forbidden"


class DuplicateError(APIError):
    status_code = 400
    code = "duplicate"


@bp_errors.app_errorhandler(APIError)
def _api_error(e: APIError):
    db.session.rollback()
    return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)


@bp_errors.app_errorhandler(HTTPException)
def _http(e: HTTPException):
    return fail(message=e.description or "HTTP error", status=e.code or 400)


@bp_errors.app_errorhandler(IntegrityError)
def _integrity(e: IntegrityError):
    db.session.rollback()
    return fail(
        message="Record already exists",
        status=400,
        code=DuplicateError.code,
        detail=str(e.orig) if getattr(e, "orig", None) else str(e),
    )


@bp_errors.app_errorhandler(Exception)
def _unhandled(e: Exception):
    current_app.logger.exception("Unhandled error: %s", e)
    db.session.rollback()
    return fail(message="Internal server error", status=500, code="unexpected", detail=str(e))


def register_jwt_handlers(jwt):
    """Render flask_jwt_extended failures in the same envelope."""

    @jwt.unauthorized_loader
    def _missing(reason):
        return fail("Unauthorized", status=401, detail=reason)

    @jwt.invalid_token_loader
    def _invalid(reason):
        return fail("Invalid token", status=401, detail=reason)

    @jwt.expired_token_loader
    def _expired(_header, _payload):
        return fail("Token expired", status=401)
