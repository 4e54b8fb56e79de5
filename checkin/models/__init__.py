"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .student import Student
from .group import Group, GroupEnrollment, EnrollmentStatus, GroupSession, SessionStatus
from .issued_token import IssuedToken
from .attendance import AttendanceRecord, Payment

__all__ = [
    'BaseModel', 'User', 'UserRole', 'Student',
    'Group', 'GroupEnrollment', 'EnrollmentStatus',
    'GroupSession', 'SessionStatus', 'IssuedToken',
    'AttendanceRecord', 'Payment'
]
