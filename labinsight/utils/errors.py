# /labinsight/utils/errors.py
"""Domain error taxonomy.

Services raise these; ``error_handlers`` turns them into JSON responses of the
form ``{"error": <message>, "code": <code>}`` with the matching HTTP status.
"""


class PortalError(Exception):
    status_code = 500
    code = 'INTERNAL'
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(PortalError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request'


class Unauthenticated(PortalError):
    status_code = 401
    code = 'UNAUTHENTICATED'
    default_message = 'Not authorized'


class AccountLocked(Unauthenticated):
    status_code = 423
    code = 'ACCOUNT_LOCKED'
    default_message = 'Account locked due to multiple failed attempts'


class Forbidden(PortalError):
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'Permission denied'


class NotFound(PortalError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class Conflict(PortalError):
    status_code = 409
    code = 'CONFLICT'
    default_message = 'Conflict'


class InvalidState(PortalError):
    status_code = 409
    code = 'INVALID_STATE'
    default_message = 'Resource is not in a valid state for this action'


class UpstreamUnavailable(PortalError):
    status_code = 503
    code = 'UPSTREAM_UNAVAILABLE'
    default_message = 'Upstream service unavailable'


class Internal(PortalError):
    pass
