"""Token redemption: verify, check credit, debit and record attendance."""
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from flask import current_app
from sqlalchemy import select, update

from checkin import db
from checkin.models.attendance import AttendanceRecord
from checkin.models.group import GroupSession, SessionStatus
from checkin.models.issued_token import IssuedToken
from checkin.models.student import Student
from checkin.models.user import User
from checkin.services.credit_ledger import CreditLedger
from checkin.services.permissions import Capability, actor_can
from checkin.services.session_service import SUBJECT_GROUP_SESSION
from checkin.services.token_codec import TokenCodec, hash_token
from checkin.services.token_service import SUBJECT_STUDENT
from checkin.services.transactions import lock_student, run_in_transaction
from checkin.utils.errors import CheckinError, ErrorKind
from checkin.utils.helpers import utcnow

logger = logging.getLogger(__name__)

class RedemptionState(Enum):
    """Where a redemption attempt got to."""
    PRESENTED = 'presented'
    VERIFIED = 'verified'
    CREDIT_CHECKED = 'credit_checked'
    COMMITTED = 'committed'
    REJECTED = 'rejected'

@dataclass
class RedemptionAttempt:
    """Book-keeping for one call to ``redeem``."""
    group_session_id: int
    actor_id: int
    state: RedemptionState = RedemptionState.PRESENTED
    student_id: Optional[int] = None

@dataclass
class RedemptionResult:
    """A committed redemption."""
    student_id: int
    credits_remaining: int
    attendance: AttendanceRecord

    def to_dict(self) -> Dict:
        return {
            'ok': True,
            'student_id': self.student_id,
            'credits_remaining': self.credits_remaining,
            'attendance_id': self.attendance.id,
            'recorded_at': self.attendance.recorded_at.isoformat(),
        }

class RedemptionEngine:
    """Turns a presented token into exactly one attendance.

    Verification and subject checks run first and are never retried.
    The commit (duplicate check, credit check, debit, attendance insert,
    marking the token used) runs as one transaction under a row lock on
    the student, retried a bounded number of times when it loses a race.
    """

    def __init__(self, codec: TokenCodec, ledger: CreditLedger,
                 max_retries: int = 3, backoff: float = 0.05):
        self.codec = codec
        self.ledger = ledger
        self.max_retries = max_retries
        self.backoff = backoff

    @classmethod
    def from_app(cls, app=None) -> 'RedemptionEngine':
        app = app or current_app
        return cls(
            codec=app.extensions['token_codec'],
            ledger=CreditLedger.from_app(app),
            max_retries=app.config['REDEMPTION_MAX_RETRIES'],
            backoff=app.config['REDEMPTION_RETRY_BACKOFF'],
        )

    def redeem(self, token: str, group_session_id: int, actor: User,
               now: Optional[datetime] = None) -> RedemptionResult:
        """Redeem ``token`` for attendance at ``group_session_id``."""
        now = now or utcnow()
        attempt = RedemptionAttempt(group_session_id=group_session_id,
                                    actor_id=actor.id if actor else None)
        try:
            claims = self.codec.verify(token, now=now)
            attempt.state = RedemptionState.VERIFIED

            session = self._active_session(group_session_id)
            student_id, stored_token = self._resolve_subject(claims, token, session, actor)
            attempt.student_id = student_id
            self._check_enrollment(student_id, session)

            record, balance = run_in_transaction(
                lambda: self._commit(attempt, session, stored_token, actor, now),
                label='redemption',
                max_retries=self.max_retries,
                backoff=self.backoff,
            )
        except CheckinError as error:
            logger.warning(
                "Redemption rejected after %s: %s (%s) session=%s student=%s actor=%s",
                attempt.state.value, error.kind.value, error.message,
                group_session_id, attempt.student_id, attempt.actor_id
            )
            attempt.state = RedemptionState.REJECTED
            raise

        attempt.state = RedemptionState.COMMITTED
        logger.info("Attendance %s committed: student %s session %s, %s credit(s) left",
                    record.id, student_id, group_session_id, balance)
        return RedemptionResult(student_id=student_id, credits_remaining=balance, attendance=record)

    def _active_session(self, group_session_id: int) -> GroupSession:
        session = db.session.get(GroupSession, group_session_id)
        if not session:
            raise CheckinError(ErrorKind.NOT_FOUND, "Session not found")
        if session.status != SessionStatus.ACTIVE:
            raise CheckinError(ErrorKind.SESSION_INACTIVE,
                               f"Session is {session.status.value}, not active")
        return session

    def _resolve_subject(self, claims: Dict, token: str, session: GroupSession,
                         actor: User) -> Tuple[int, Optional[IssuedToken]]:
        """Work out which student attends and which stored token is spent."""
        kind = claims.get('subject_kind')
        subject_id = claims.get('subject_id')
        if isinstance(subject_id, bool) or not isinstance(subject_id, int):
            raise CheckinError(ErrorKind.MALFORMED, "Token subject is invalid")

        if kind == SUBJECT_GROUP_SESSION:
            if subject_id != session.id:
                raise CheckinError(ErrorKind.SESSION_MISMATCH, "Token belongs to another session")
            if not session.token or not hmac.compare_digest(token, session.token):
                raise CheckinError(ErrorKind.UNKNOWN_TOKEN, "Token is not the current token of this session")
            if not actor_can(actor, Capability.REDEEM_SESSION_TOKEN) or actor.student_id is None:
                raise CheckinError(ErrorKind.FORBIDDEN,
                                   "Session tokens are redeemed by the attending student")
            return actor.student_id, None

        if kind == SUBJECT_STUDENT:
            if not actor_can(actor, Capability.REDEEM_STUDENT_TOKEN, session.group):
                raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to scan student tokens here")

            bound_session = claims.get('session_id')
            if bound_session is not None and bound_session != session.id:
                raise CheckinError(ErrorKind.SESSION_MISMATCH, "Token is bound to another session")

            stored = IssuedToken.query.filter_by(token_hash=hash_token(token)).first()
            if stored is None or stored.student_id != subject_id:
                raise CheckinError(ErrorKind.UNKNOWN_TOKEN, "Token was not issued by this system")
            if stored.used:
                raise CheckinError(ErrorKind.ALREADY_USED, "Token has already been used")
            return subject_id, stored

        raise CheckinError(ErrorKind.MALFORMED, "Unknown token subject")

    def _check_enrollment(self, student_id: int, session: GroupSession) -> None:
        student = db.session.get(Student, student_id)
        if not student or not student.is_active:
            raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")
        if not student.is_enrolled_in(session.group_id):
            raise CheckinError(ErrorKind.FORBIDDEN, "Student is not enrolled in this group")

    def _commit(self, attempt: RedemptionAttempt, session: GroupSession,
                stored_token: Optional[IssuedToken], actor: User,
                now: datetime) -> Tuple[AttendanceRecord, int]:
        """Body of the redemption transaction; the caller commits."""
        student_id = attempt.student_id
        student = lock_student(student_id)
        if not student or not student.is_active:
            raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")

        if stored_token is not None:
            marked = db.session.execute(
                update(IssuedToken)
                .where(IssuedToken.id == stored_token.id, IssuedToken.used.is_(False))
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if marked != 1:
                raise CheckinError(ErrorKind.ALREADY_USED, "Token has already been used")

        attended = db.session.scalar(
            select(AttendanceRecord.id).where(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.group_session_id == session.id,
            )
        )
        if attended is not None:
            raise CheckinError(ErrorKind.ALREADY_ATTENDED, "Already marked present for this session")

        if student.credit_balance <= 0:
            raise CheckinError(ErrorKind.INSUFFICIENT_CREDIT, "No sessions remaining")
        attempt.state = RedemptionState.CREDIT_CHECKED

        record = self.ledger.apply_attendance_deduction(
            student_id=student_id,
            group_session_id=session.id,
            recorded_at=now,
            recorded_by=actor.id,
            token_id=stored_token.id if stored_token is not None else None,
        )
        return record, self.ledger.balance_of(student_id)
