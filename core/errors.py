"""
API error taxonomy and the handlers that render it.

Every error leaves the service as ``{"success": false, "message": ...}``.
Unexpected exceptions are logged with their traceback and reported to the
client as a generic 500.
"""
from werkzeug.exceptions import HTTPException

from core.imports import jsonify, current_app


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None, status_code=None, error=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        # machine readable reason, e.g. "expired" for OTP checks
        self.error = error

    def to_dict(self):
        body = {"success": False, "message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class AuthError(ApiError):
    status_code = 401
    message = "Authentication required"


class AuthorizationError(ApiError):
    status_code = 403
    message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class PaymentVerificationError(ApiError):
    status_code = 400
    message = "Payment verification failed"


class UpstreamError(ApiError):
    status_code = 500
    message = "Internal server error"


def error_response(message, status_code):
    return jsonify({"success": False, "message": message}), status_code


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if isinstance(e, UpstreamError) and e.__cause__ is not None:
            current_app.logger.error("Upstream failure: %s (%r)", e.message, e.__cause__)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        if e.code == 404:
            return error_response("API endpoint not found", 404)
        if e.code == 405:
            return error_response("Method not allowed", 405)
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        current_app.logger.exception("Unhandled error: %s", e)
        return error_response("Internal server error", 500)
