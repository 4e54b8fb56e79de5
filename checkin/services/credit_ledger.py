"""Credit ledger: the only writer of student balances."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from flask import current_app
from sqlalchemy import func, select, update

from checkin import db
from checkin.models.attendance import AttendanceRecord, Payment
from checkin.models.student import Student
from checkin.models.user import User
from checkin.services.permissions import Capability, actor_can
from checkin.services.transactions import lock_student, run_in_transaction
from checkin.utils.errors import CheckinError, ErrorKind
from checkin.utils.helpers import utcnow
from checkin.utils.validators import Validator

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Reconciliation:
    """Balance of a student next to the sums of its ledger facts."""
    student_id: int
    balance: int
    total_purchased: int
    payments_total: int
    deductions_total: int

    @property
    def consistent(self) -> bool:
        return (self.balance == self.payments_total + self.deductions_total
                and self.total_purchased == self.payments_total)

    def to_dict(self) -> Dict:
        return {
            'student_id': self.student_id,
            'credit_balance': self.balance,
            'total_purchased': self.total_purchased,
            'payments_total': self.payments_total,
            'deductions_total': self.deductions_total,
            'consistent': self.consistent,
        }

class CreditLedger:
    """Applies payments and attendance deductions to student balances.

    Every balance change is written together with the fact that explains
    it, so ``credit_balance`` always equals the replay of Payment and
    AttendanceRecord deltas.
    """

    def __init__(self, max_retries: int = 3, backoff: float = 0.05):
        self.max_retries = max_retries
        self.backoff = backoff

    @classmethod
    def from_app(cls, app=None) -> 'CreditLedger':
        config = (app or current_app).config
        return cls(
            max_retries=config['REDEMPTION_MAX_RETRIES'],
            backoff=config['REDEMPTION_RETRY_BACKOFF'],
        )

    def apply_payment(
        self,
        student_id: int,
        amount,
        credits_added,
        actor: User,
        method: str = 'cash',
        reference: str = None,
        notes: str = None,
        now: Optional[datetime] = None
    ) -> Payment:
        """Record a payment and add its credits in one transaction."""
        if not actor_can(actor, Capability.RECORD_PAYMENT):
            raise CheckinError(ErrorKind.FORBIDDEN, "Not allowed to record payments")

        amount = Validator.parse_amount(amount)
        credits_added = Validator.parse_credits(credits_added)
        method = method or 'cash'
        if method not in Payment.METHOD_CHOICES:
            raise CheckinError(
                ErrorKind.INVALID_INPUT,
                f"method must be one of: {', '.join(Payment.METHOD_CHOICES)}"
            )
        recorded_at = now or utcnow()

        def operation():
            student = lock_student(student_id)
            if not student or not student.is_active:
                raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")

            db.session.execute(
                update(Student)
                .where(Student.id == student_id)
                .values(
                    credit_balance=Student.credit_balance + credits_added,
                    total_purchased=Student.total_purchased + credits_added,
                )
                .execution_options(synchronize_session=False)
            )

            payment = Payment(
                student_id=student_id,
                amount=amount,
                credit_delta=credits_added,
                method=method,
                reference=reference,
                notes=notes,
                recorded_by=actor.id,
                recorded_at=recorded_at,
            )
            db.session.add(payment)
            db.session.flush()
            return payment

        payment = run_in_transaction(
            operation,
            label='payment',
            max_retries=self.max_retries,
            backoff=self.backoff,
        )
        logger.info("Payment %s recorded for student %s: +%s credits by user %s",
                    payment.id, student_id, credits_added, actor.id)
        return payment

    def apply_attendance_deduction(
        self,
        student_id: int,
        group_session_id: int,
        recorded_at: datetime,
        recorded_by: Optional[int] = None,
        token_id: Optional[int] = None
    ) -> AttendanceRecord:
        """Debit one credit and write the attendance fact.

        Only called from the redemption commit, inside its transaction;
        it flushes but never commits.
        """
        debited = db.session.execute(
            update(Student)
            .where(Student.id == student_id, Student.credit_balance > 0)
            .values(credit_balance=Student.credit_balance - 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        if debited != 1:
            raise CheckinError(ErrorKind.INSUFFICIENT_CREDIT, "No sessions remaining")

        record = AttendanceRecord(
            student_id=student_id,
            group_session_id=group_session_id,
            recorded_at=recorded_at,
            credit_delta=-1,
            recorded_by=recorded_by,
            token_id=token_id,
        )
        db.session.add(record)
        db.session.flush()
        return record

    def balance_of(self, student_id: int) -> int:
        """Current balance straight from the store."""
        return db.session.scalar(
            select(Student.credit_balance).where(Student.id == student_id)
        )

    def reconcile(self, student_id: int) -> Reconciliation:
        """Compare the live balance with the replay of ledger facts."""
        student = db.session.get(Student, student_id, populate_existing=True)
        if not student:
            raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")

        payments_total = db.session.scalar(
            select(func.coalesce(func.sum(Payment.credit_delta), 0))
            .where(Payment.student_id == student_id)
        )
        deductions_total = db.session.scalar(
            select(func.coalesce(func.sum(AttendanceRecord.credit_delta), 0))
            .where(AttendanceRecord.student_id == student_id)
        )

        return Reconciliation(
            student_id=student_id,
            balance=student.credit_balance,
            total_purchased=student.total_purchased,
            payments_total=int(payments_total),
            deductions_total=int(deductions_total),
        )

    def history(self, student_id: int, limit: int = 50) -> Dict:
        """Payments and attendances of a student, newest first."""
        student = db.session.get(Student, student_id)
        if not student:
            raise CheckinError(ErrorKind.NOT_FOUND, "Student not found")

        payments = student.payments.order_by(Payment.recorded_at.desc(), Payment.id.desc()).limit(limit)
        attendances = student.attendance_records.order_by(
            AttendanceRecord.recorded_at.desc(), AttendanceRecord.id.desc()
        ).limit(limit)

        return {
            'student': student.to_dict(),
            'payments': [payment.to_dict() for payment in payments],
            'attendances': [record.to_dict() for record in attendances],
        }
