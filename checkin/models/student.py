"""Student ledger account model."""
from checkin import db
from checkin.models.base import BaseModel
from checkin.utils.helpers import utcnow

class Student(BaseModel):
    """Student with a prepaid session credit balance.

    ``credit_balance`` and ``total_purchased`` are only ever written by the
    credit ledger. Rows are never deleted once history references them;
    ``deactivate`` is the way out.
    """

    __tablename__ = 'students'
    __table_args__ = (
        db.CheckConstraint('credit_balance >= 0', name='ck_students_credit_balance_non_negative'),
        db.CheckConstraint('total_purchased >= 0', name='ck_students_total_purchased_non_negative'),
    )

    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    # Ledger
    credit_balance = db.Column(db.Integer, nullable=False, default=0)
    total_purchased = db.Column(db.Integer, nullable=False, default=0)

    # Status
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deactivated_at = db.Column(db.DateTime, nullable=True)

    # Relationships (history is permanent, no cascades)
    payments = db.relationship('Payment', backref='student', lazy='dynamic')
    attendance_records = db.relationship('AttendanceRecord', backref='student', lazy='dynamic')
    enrollments = db.relationship('GroupEnrollment', backref='student', lazy='dynamic')

    def deactivate(self) -> None:
        """Soft-deactivate the student."""
        self.is_active = False
        self.deactivated_at = utcnow()

    def is_enrolled_in(self, group_id: int) -> bool:
        """Check for an active enrollment in a group."""
        from checkin.models.group import EnrollmentStatus

        return self.enrollments.filter_by(
            group_id=group_id,
            status=EnrollmentStatus.ACTIVE
        ).first() is not None

    def __repr__(self) -> str:
        return f'<Student {self.id} {self.full_name}>'
