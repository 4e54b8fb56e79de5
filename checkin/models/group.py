"""Group, enrollment and group session models."""
import enum
from checkin import db
from checkin.models.base import BaseModel

class EnrollmentStatus(enum.Enum):
    """Enrollment status enumeration."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    COMPLETED = 'completed'

class SessionStatus(enum.Enum):
    """Group session lifecycle: scheduled -> active -> completed | cancelled."""
    SCHEDULED = 'scheduled'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

class Group(BaseModel):
    """Teaching group students enroll into."""

    __tablename__ = 'groups'

    name = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=True)
    max_students = db.Column(db.Integer, nullable=False, default=20)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    enrollments = db.relationship('GroupEnrollment', backref='group', lazy='dynamic')
    sessions = db.relationship('GroupSession', backref='group', lazy='dynamic')

    def __repr__(self) -> str:
        return f'<Group {self.name}>'

class GroupEnrollment(BaseModel):
    """Membership of a student in a group."""

    __tablename__ = 'group_students'
    __table_args__ = (
        db.UniqueConstraint('group_id', 'student_id', name='uq_group_students_group_student'),
    )

    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    status = db.Column(db.Enum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.ACTIVE)

class GroupSession(BaseModel):
    """One scheduled occurrence of a group, owning at most one live token."""

    __tablename__ = 'group_sessions'
    __table_args__ = (
        db.UniqueConstraint('group_id', 'session_date', 'start_time',
                            name='uq_group_sessions_group_date_time'),
    )

    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False, index=True)
    session_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    status = db.Column(db.Enum(SessionStatus), nullable=False, default=SessionStatus.SCHEDULED)

    # Current session window token
    token = db.Column(db.Text, nullable=True)
    token_expires_at = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    attendance_records = db.relationship('AttendanceRecord', backref='group_session', lazy='dynamic')

    def has_live_token(self, now) -> bool:
        """Check if the session token is still inside its window."""
        return bool(self.token) and self.token_expires_at is not None and now < self.token_expires_at

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary, never exposing the stored token."""
        exclude = (exclude or []) + ['token']
        result = super().to_dict(exclude=exclude)
        result['group_name'] = self.group.name if self.group else None
        return result

    def __repr__(self) -> str:
        return f'<GroupSession {self.group_id} {self.session_date} {self.start_time}>'
