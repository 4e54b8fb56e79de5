"""Attendance and payment ledger facts."""
from sqlalchemy import event
from checkin import db
from checkin.models.base import BaseModel
from checkin.utils.helpers import utcnow

class AttendanceRecord(BaseModel):
    """One attended session; at most one per student and session."""

    __tablename__ = 'attendance_records'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'group_session_id',
                            name='uq_attendance_records_student_session'),
        db.CheckConstraint('credit_delta < 0', name='ck_attendance_records_credit_delta_negative'),
    )

    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    group_session_id = db.Column(db.Integer, db.ForeignKey('group_sessions.id'), nullable=False, index=True)
    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    credit_delta = db.Column(db.Integer, nullable=False, default=-1)

    # Audit
    token_id = db.Column(db.Integer, db.ForeignKey('issued_tokens.id'), nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def __repr__(self):
        return f'<AttendanceRecord {self.student_id}-{self.group_session_id}>'

class Payment(BaseModel):
    """Recorded (not processed) payment that adds credits."""

    METHOD_CHOICES = ('cash', 'card', 'bank')

    __tablename__ = 'payments'
    __table_args__ = (
        db.CheckConstraint('credit_delta > 0', name='ck_payments_credit_delta_positive'),
        db.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )

    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    credit_delta = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(20), nullable=False, default='cash')
    reference = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Payment {self.id} student={self.student_id} +{self.credit_delta}>'

@event.listens_for(AttendanceRecord, 'before_update')
@event.listens_for(Payment, 'before_update')
def _reject_fact_update(mapper, connection, target):
    raise ValueError(f'{target.__class__.__name__} rows are append-only')
