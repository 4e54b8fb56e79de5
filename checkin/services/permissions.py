"""Capability checks for request actors."""
from enum import Enum
from checkin.models.user import User, UserRole

class Capability(Enum):
    """Things an actor may be allowed to do."""
    START_SESSION = 'start_session'
    CANCEL_SESSION = 'cancel_session'
    ISSUE_STUDENT_TOKEN = 'issue_student_token'
    REDEEM_STUDENT_TOKEN = 'redeem_student_token'
    REDEEM_SESSION_TOKEN = 'redeem_session_token'
    RECORD_PAYMENT = 'record_payment'
    VIEW_LEDGER = 'view_ledger'

_STAFF = {
    Capability.START_SESSION,
    Capability.CANCEL_SESSION,
    Capability.ISSUE_STUDENT_TOKEN,
    Capability.REDEEM_STUDENT_TOKEN,
    Capability.VIEW_LEDGER,
}

ROLE_CAPABILITIES = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.SECRETARY: frozenset(_STAFF | {Capability.RECORD_PAYMENT}),
    UserRole.TEACHER: frozenset(_STAFF),
    UserRole.STUDENT: frozenset({Capability.REDEEM_SESSION_TOKEN}),
}

def actor_can(actor: User, capability: Capability, context=None) -> bool:
    """Decide whether ``actor`` holds ``capability``.

    ``context`` may be a Group; non-admin staff then also need to be
    assigned to it. Admins reach every group.
    """
    if actor is None or not actor.is_active:
        return False

    if capability not in ROLE_CAPABILITIES.get(actor.role, frozenset()):
        return False

    if context is not None and actor.role != UserRole.ADMIN and actor.is_staff():
        return actor.is_assigned_to(context)

    return True
