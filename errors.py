"""
Error kinds raised by the service layer.

Each kind carries the HTTP status the boundary answers with; the Flask
handler registered in app.py turns any AppError into
``{"error": <message>, "code": <code>}``.
"""


class AppError(Exception):
    status_code = 500
    code = "APP_ERROR"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        body.update(self.extra)
        return body


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidState(AppError):
    status_code = 400
    code = "INVALID_STATE"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class InvalidSignature(AppError):
    status_code = 400
    code = "INVALID_SIGNATURE"


class GatewayError(AppError):
    status_code = 500
    code = "GATEWAY_ERROR"

    def __init__(self, message: str, gateway_code: str = None, description: str = None, **extra):
        super().__init__(message, **extra)
        self.gateway_code = gateway_code
        self.description = description


class GatewayValidationError(GatewayError, ValidationError):
    # Gateway rejected the request shape: the caller sent something bad
    status_code = 400
    code = "GATEWAY_VALIDATION_ERROR"


class NotificationError(AppError):
    status_code = 500
    code = "NOTIFICATION_ERROR"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"
