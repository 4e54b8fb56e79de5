"""Shared fixtures for the check-in service tests."""
from datetime import date, time

import pytest
from flask_jwt_extended import create_access_token

from checkin import create_app, db
from checkin.models.group import Group, GroupEnrollment
from checkin.models.student import Student
from checkin.models.user import User, UserRole
from checkin.services.credit_ledger import CreditLedger
from checkin.services.session_service import SessionService

@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

@pytest.fixture
def group(app):
    """Active teaching group."""
    group = Group(name='Algebra A', subject='Mathematics')
    return group.save()

@pytest.fixture
def make_user(app):
    """Factory for actors."""
    counter = {'n': 0}

    def _make(role, groups=(), student=None):
        counter['n'] += 1
        user = User(
            email=f'{role.value}{counter["n"]}@center.test',
            name=f'{role.value.title()} {counter["n"]}',
            role=role,
            student_id=student.id if student else None
        )
        user.assigned_groups.extend(groups)
        return user.save()

    return _make

@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)

@pytest.fixture
def secretary(make_user, group):
    return make_user(UserRole.SECRETARY, groups=[group])

@pytest.fixture
def teacher(make_user, group):
    return make_user(UserRole.TEACHER, groups=[group])

@pytest.fixture
def ledger(app):
    return CreditLedger.from_app(app)

@pytest.fixture
def make_student(app, group, make_user, ledger, admin):
    """Factory for enrolled students with a login and an opening balance."""
    def _make(credits=0, name='Lina Haddad', enrolled=True):
        student = Student(full_name=name).save()
        if enrolled:
            GroupEnrollment(group_id=group.id, student_id=student.id).save()
        make_user(UserRole.STUDENT, student=student)
        if credits:
            ledger.apply_payment(student.id, amount=10 * credits, credits_added=credits, actor=admin)
        return student

    return _make

@pytest.fixture
def start_session(group, teacher):
    """Start a session for the shared group at the given hour."""
    def _start(hour=16, day=date(2026, 10, 19), **kwargs):
        return SessionService.start_session(group.id, day, time(hour, 0), teacher, **kwargs)

    return _start

@pytest.fixture
def auth_header(app):
    """Bearer header for a user."""
    def _header(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}

    return _header
