"""Tests for group session lifecycle."""
from datetime import date, datetime, time, timedelta

import pytest

from checkin import db
from checkin.models.group import Group, GroupSession, SessionStatus
from checkin.models.user import UserRole
from checkin.services.session_service import SUBJECT_GROUP_SESSION, SessionService
from checkin.utils.errors import CheckinError, ErrorKind

NOW = datetime(2026, 10, 19, 15, 55)

def test_start_activates_session_and_issues_token(app, start_session, teacher):
    started = start_session(now=NOW, notes='Chapter 4')

    assert not started.reused
    assert started.session.status == SessionStatus.ACTIVE
    assert started.session.notes == 'Chapter 4'
    assert started.session.created_by == teacher.id
    assert started.expires_at == NOW + app.config['SESSION_TOKEN_TTL']

    claims = app.extensions['token_codec'].verify(started.token, now=NOW)
    assert claims['subject_kind'] == SUBJECT_GROUP_SESSION
    assert claims['subject_id'] == started.session.id
    assert claims['issuer_id'] == teacher.id

def test_restart_within_window_reuses_token(start_session):
    first = start_session(now=NOW)
    second = start_session(now=NOW + timedelta(minutes=30))

    assert second.reused
    assert second.token == first.token
    assert second.session.id == first.session.id
    assert GroupSession.query.count() == 1

def test_restart_after_window_issues_new_token(app, start_session):
    first = start_session(now=NOW)
    later = NOW + app.config['SESSION_TOKEN_TTL'] + timedelta(seconds=1)

    second = start_session(now=later)

    assert not second.reused
    assert second.token != first.token
    assert second.session.token_expires_at > later

def test_distinct_slots_get_distinct_sessions(start_session):
    morning = start_session(hour=9, now=NOW)
    evening = start_session(hour=18, now=NOW)
    tomorrow = start_session(hour=9, day=date(2026, 10, 20), now=NOW)

    assert len({morning.session.id, evening.session.id, tomorrow.session.id}) == 3

def test_unassigned_teacher_cannot_start(group, make_user):
    outsider = make_user(UserRole.TEACHER)

    with pytest.raises(CheckinError) as exc:
        SessionService.start_session(group.id, date(2026, 10, 19), time(16), outsider)

    assert exc.value.kind == ErrorKind.FORBIDDEN
    assert GroupSession.query.count() == 0

def test_student_cannot_start(group, make_user):
    with pytest.raises(CheckinError) as exc:
        SessionService.start_session(group.id, date(2026, 10, 19), time(16), make_user(UserRole.STUDENT))

    assert exc.value.kind == ErrorKind.FORBIDDEN

def test_student_is_forbidden_before_group_lookup(make_user):
    with pytest.raises(CheckinError) as exc:
        SessionService.start_session(404, date(2026, 10, 19), time(16), make_user(UserRole.STUDENT))

    assert exc.value.kind == ErrorKind.FORBIDDEN

def test_admin_starts_any_group(admin):
    other = Group(name='Chemistry C').save()

    started = SessionService.start_session(other.id, date(2026, 10, 19), time(16), admin, now=NOW)

    assert started.session.group_id == other.id

def test_missing_or_inactive_group(group, admin):
    with pytest.raises(CheckinError) as exc:
        SessionService.start_session(404, date(2026, 10, 19), time(16), admin)
    assert exc.value.kind == ErrorKind.NOT_FOUND

    group.is_active = False
    db.session.commit()
    with pytest.raises(CheckinError) as exc:
        SessionService.start_session(group.id, date(2026, 10, 19), time(16), admin)
    assert exc.value.kind == ErrorKind.NOT_FOUND

def test_cancelled_session_cannot_restart(start_session, teacher):
    started = start_session(now=NOW)
    SessionService.cancel_session(started.session.id, teacher)

    with pytest.raises(CheckinError) as exc:
        start_session(now=NOW)

    assert exc.value.kind == ErrorKind.SESSION_INACTIVE

def test_cancel_twice_is_rejected(start_session, teacher):
    started = start_session(now=NOW)
    cancelled = SessionService.cancel_session(started.session.id, teacher)
    assert cancelled.status == SessionStatus.CANCELLED

    with pytest.raises(CheckinError) as exc:
        SessionService.cancel_session(started.session.id, teacher)

    assert exc.value.kind == ErrorKind.SESSION_INACTIVE

def test_cancel_requires_group_assignment(start_session, make_user):
    started = start_session(now=NOW)

    with pytest.raises(CheckinError) as exc:
        SessionService.cancel_session(started.session.id, make_user(UserRole.TEACHER))

    assert exc.value.kind == ErrorKind.FORBIDDEN

def test_cancel_missing_session(teacher):
    with pytest.raises(CheckinError) as exc:
        SessionService.cancel_session(404, teacher)

    assert exc.value.kind == ErrorKind.NOT_FOUND

def test_complete_expired_sessions(app, start_session):
    expired = start_session(hour=9, now=NOW).session
    live = start_session(hour=18, now=NOW + timedelta(hours=3)).session
    cutoff = NOW + app.config['SESSION_TOKEN_TTL']

    assert SessionService.complete_expired_sessions(now=cutoff) == 1
    assert expired.status == SessionStatus.COMPLETED
    assert live.status == SessionStatus.ACTIVE
    assert SessionService.complete_expired_sessions(now=cutoff) == 0
