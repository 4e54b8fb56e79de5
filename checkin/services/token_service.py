"""Single-use student attendance tokens."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from checkin import db
from checkin.models.group import GroupSession
from checkin.models.issued_token import IssuedToken
from checkin.models.student import Student
from checkin.models.user import User
from checkin.services.permissions import Capability, actor_can
from checkin.services.token_codec import hash_token
from checkin.utils.errors import CheckinError, ErrorKind
from checkin.utils.helpers import utcnow

logger = logging.getLogger(__name__)

SUBJECT_STUDENT = 'student'

@dataclass
class StudentToken:
    """Issued student token with the balance seen at issuance."""
    token: str
    expires_at: datetime
    student: Student
    credits_remaining: int

class TokenService:
    """Service for issuing student tokens."""

    @staticmethod
    def issue_student_token(
        student_id: int,
        actor: User,
        session_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> StudentToken:
        """Issue a token that lets one student attend once.

        The credit check here is optimistic; redemption checks again.
        """
        if not actor_can(actor, Capability.ISSUE_STUDENT_TOKEN):
            raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to issue student tokens")

        now = now or utcnow()
        student = db.session.get(Student, student_id)
        if not student or not student.is_active:
            raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")

        if session_id is not None and db.session.get(GroupSession, session_id) is None:
            raise CheckinError(ErrorKind.NOT_FOUND, "Session not found")

        if student.credit_balance <= 0:
            raise CheckinError(ErrorKind.INSUFFICIENT_CREDIT, "No sessions remaining")

        ttl = current_app.config['STUDENT_TOKEN_TTL']
        codec = current_app.extensions['token_codec']
        token = codec.issue(
            {
                'subject_kind': SUBJECT_STUDENT,
                'subject_id': student.id,
                'session_id': session_id,
                'issuer_id': actor.id,
            },
            ttl,
            now=now,
        )
        expires_at = codec.expiry(ttl, now)

        db.session.add(IssuedToken(
            token_hash=hash_token(token),
            student_id=student.id,
            session_id=session_id,
            issued_by=actor.id,
            expires_at=expires_at,
            used=False,
        ))
        db.session.commit()

        logger.info("Student token issued for student %s by user %s, expires %s",
                    student.id, actor.id, expires_at)
        return StudentToken(token, expires_at, student, student.credit_balance)
