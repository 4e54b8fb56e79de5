"""User model for request actors."""
from enum import Enum
from checkin import db
from checkin.models.base import BaseModel

class UserRole(Enum):
    """User roles enumeration."""
    STUDENT = 'student'
    TEACHER = 'teacher'
    SECRETARY = 'secretary'
    ADMIN = 'admin'

group_staff = db.Table(
    'group_staff',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id'), primary_key=True),
)

class User(BaseModel):
    """Authenticated actor: center staff or a student login.

    Authentication itself happens upstream; this row only carries the
    role and the scope the capability checks need.
    """

    __tablename__ = 'users'

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Student logins point at their ledger account
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), unique=True, nullable=True)

    # Relationships
    student = db.relationship('Student', backref=db.backref('login', uselist=False))
    assigned_groups = db.relationship('Group', secondary=group_staff, lazy='selectin',
                                      backref=db.backref('staff', lazy='selectin'))

    def is_staff(self) -> bool:
        """Check if user is center staff."""
        return self.role in [UserRole.TEACHER, UserRole.SECRETARY, UserRole.ADMIN]

    def is_assigned_to(self, group) -> bool:
        """Check if user is assigned to a specific group."""
        return any(assigned.id == group.id for assigned in self.assigned_groups)

    def __repr__(self) -> str:
        return f'<User {self.email}>'
