"""Error taxonomy shared by services and routes."""
from enum import Enum

class ErrorKind(Enum):
    """Rejection reasons surfaced to clients."""
    UNAUTHORIZED = 'unauthorized'
    FORBIDDEN = 'forbidden'
    NOT_FOUND = 'not_found'
    INVALID_INPUT = 'invalid_input'
    MALFORMED = 'malformed'
    BAD_SIGNATURE = 'bad_signature'
    EXPIRED = 'expired'
    UNKNOWN_TOKEN = 'unknown_token'
    ALREADY_USED = 'already_used'
    ALREADY_ATTENDED = 'already_attended'
    INSUFFICIENT_CREDIT = 'insufficient_credit'
    SESSION_MISMATCH = 'session_mismatch'
    SESSION_INACTIVE = 'session_inactive'
    CONFLICT = 'conflict'
    INTERNAL = 'internal'

STATUS_CODES = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

class CheckinError(Exception):
    """Raised by services for any client-facing rejection."""

    def __init__(self, kind: ErrorKind, message: str = None):
        self.kind = kind
        self.message = message or kind.value.replace('_', ' ').capitalize()
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        # Token, idempotency and business-rule failures are client errors
        return STATUS_CODES.get(self.kind, 400)

    def __repr__(self) -> str:
        return f'<CheckinError {self.kind.value}: {self.message}>'
