"""
API error taxonomy.

Every failure raised by the ledger, approval and timetable modules derives from
ApiError; main.py turns them into {"ok": false, "error": ...} responses with the
matching HTTP status.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(ApiError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Admin access required"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Already exists"


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class InsufficientCredits(ApiError):
    status_code = 400
    default_message = "Insufficient credits"


class ServerError(ApiError):
    status_code = 500
    default_message = "Server error"
