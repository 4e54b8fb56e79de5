"""Group session lifecycle and session window tokens."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from flask import current_app
from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError

from checkin import db
from checkin.models.group import Group, GroupSession, SessionStatus
from checkin.models.user import User
from checkin.services.permissions import Capability, actor_can
from checkin.utils.errors import CheckinError, ErrorKind
from checkin.utils.helpers import utcnow

logger = logging.getLogger(__name__)

SUBJECT_GROUP_SESSION = 'group_session'

@dataclass
class SessionStart:
    """Outcome of starting (or re-opening) a group session."""
    session: GroupSession
    token: str
    expires_at: datetime
    reused: bool = False

class SessionService:
    """Service for group sessions."""

    @staticmethod
    def start_session(
        group_id: int,
        session_date: date,
        start_time: time,
        actor: User,
        notes: str = None,
        now: Optional[datetime] = None
    ) -> SessionStart:
        """Activate the session for a group slot and hand out its token.

        An active session whose token is still live is reused as is, so
        repeated calls during the window return the same token.
        """
        now = now or utcnow()
        if not actor_can(actor, Capability.START_SESSION):
            raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to start sessions")

        group = db.session.get(Group, group_id)
        if not group or not group.is_active:
            raise CheckinError(ErrorKind.NOT_FOUND, "Group not found or inactive")

        if not actor_can(actor, Capability.START_SESSION, group):
            raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to start sessions for this group")

        session = SessionService._get_or_create(group, session_date, start_time, actor, notes)

        SessionService._ensure_startable(session)
        if session.status == SessionStatus.ACTIVE and session.has_live_token(now):
            return SessionStart(session, session.token, session.token_expires_at, reused=True)

        ttl = current_app.config['SESSION_TOKEN_TTL']
        codec = current_app.extensions['token_codec']
        token = codec.issue(
            {
                'subject_kind': SUBJECT_GROUP_SESSION,
                'subject_id': session.id,
                'issuer_id': actor.id,
            },
            ttl,
            now=now,
        )
        expires_at = codec.expiry(ttl, now)

        # Only a scheduled session or one whose window has lapsed may take a new token
        values = dict(status=SessionStatus.ACTIVE, token=token, token_expires_at=expires_at)
        if notes:
            values['notes'] = notes
        activated = db.session.execute(
            update(GroupSession)
            .where(
                GroupSession.id == session.id,
                or_(
                    GroupSession.status == SessionStatus.SCHEDULED,
                    and_(
                        GroupSession.status == SessionStatus.ACTIVE,
                        or_(GroupSession.token_expires_at.is_(None),
                            GroupSession.token_expires_at <= now),
                    ),
                ),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount

        if activated != 1:
            db.session.rollback()
            SessionService._ensure_startable(session)
            if session.status == SessionStatus.ACTIVE and session.has_live_token(now):
                logger.info("Session %s already started concurrently, reusing its token", session.id)
                return SessionStart(session, session.token, session.token_expires_at, reused=True)
            raise CheckinError(ErrorKind.CONFLICT, "Session changed while starting, try again")

        db.session.commit()
        logger.info("Session %s for group %s started by user %s, window until %s",
                    session.id, group.id, actor.id, expires_at)
        return SessionStart(session, token, expires_at)

    @staticmethod
    def _ensure_startable(session: GroupSession) -> None:
        if session.status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
            raise CheckinError(
                ErrorKind.SESSION_INACTIVE,
                f"Session is already {session.status.value}"
            )

    @staticmethod
    def _get_or_create(group: Group, session_date: date, start_time: time,
                       actor: User, notes: str) -> GroupSession:
        """First writer wins; losers read the winner's row."""
        lookup = dict(group_id=group.id, session_date=session_date, start_time=start_time)

        session = GroupSession.query.filter_by(**lookup).first()
        if session:
            return session

        session = GroupSession(
            status=SessionStatus.SCHEDULED,
            notes=notes,
            created_by=actor.id,
            **lookup
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            session = GroupSession.query.filter_by(**lookup).first()
            if session is None:
                raise
        return session

    @staticmethod
    def cancel_session(session_id: int, actor: User) -> GroupSession:
        """Cancel a scheduled or active session; its token stops redeeming."""
        session = db.session.get(GroupSession, session_id)
        if not session:
            raise CheckinError(ErrorKind.NOT_FOUND, "Session not found")

        if not actor_can(actor, Capability.CANCEL_SESSION, session.group):
            raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to cancel sessions for this group")

        if session.status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
            raise CheckinError(
                ErrorKind.SESSION_INACTIVE,
                f"Session is already {session.status.value}"
            )

        session.status = SessionStatus.CANCELLED
        db.session.commit()
        logger.info("Session %s cancelled by user %s", session.id, actor.id)
        return session

    @staticmethod
    def complete_expired_sessions(now: Optional[datetime] = None) -> int:
        """Complete active sessions whose token window has elapsed."""
        now = now or utcnow()
        expired = GroupSession.query.filter(
            GroupSession.status == SessionStatus.ACTIVE,
            GroupSession.token_expires_at <= now
        ).all()

        for session in expired:
            session.status = SessionStatus.COMPLETED
        db.session.commit()

        if expired:
            logger.info("Completed %s expired session(s)", len(expired))
        return len(expired)
