"""
POS Errors
Exception taxonomy raised by the services and rendered as JSON by the app
"""


class PosError(Exception):
    """Base class for user-facing POS failures"""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'success': False, 'error': self.message, 'type': type(self).__name__}


class ValidationError(PosError):
    """Bad input, rejected before anything is written"""
    status_code = 400


class AuthorizationError(PosError):
    status_code = 403


class NotFoundError(PosError):
    status_code = 404


class InvariantViolation(PosError):
    """Duplicate open shift, duplicate category/employee name and the like"""
    status_code = 409


class OfflineError(PosError):
    """Operation refused because the remote store is unreachable"""
    status_code = 503
