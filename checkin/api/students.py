"""Student credit API endpoints."""
from flask import Blueprint, current_app, request
from checkin import db
from checkin.services.credit_ledger import CreditLedger
from checkin.services.permissions import Capability
from checkin.utils.decorators import capability_required, current_actor
from checkin.utils.errors import CheckinError
from checkin.utils.helpers import success_response, error_response
from checkin.utils.validators import Validator

students_bp = Blueprint('students', __name__)

@students_bp.route('/<int:student_id>/credit', methods=['PUT'])
@capability_required(Capability.RECORD_PAYMENT)
def add_credit(student_id):
    """Record a payment and add its sessions to the student's balance."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['amount', 'credits_added'])

    ledger = CreditLedger.from_app()
    try:
        payment = ledger.apply_payment(
            student_id=student_id,
            amount=data['amount'],
            credits_added=data['credits_added'],
            actor=current_actor(),
            method=Validator.optional_text(data, 'method', max_length=20),
            reference=Validator.optional_text(data, 'reference'),
            notes=Validator.optional_text(data, 'notes', max_length=2000)
        )
        report = ledger.reconcile(student_id)
    except CheckinError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error recording payment for student %s", student_id)
        return error_response("Failed to process payment", 500, code='internal')

    return success_response(
        data={
            'payment': payment.to_dict(),
            'student': {
                'id': student_id,
                'credit_balance': report.balance,
                'total_purchased': report.total_purchased
            }
        },
        message="Payment recorded"
    )

@students_bp.route('/<int:student_id>/ledger', methods=['GET'])
@capability_required(Capability.VIEW_LEDGER)
def get_ledger(student_id):
    """Student balance, payment and attendance history with reconciliation."""
    ledger = CreditLedger.from_app()
    limit = max(1, min(request.args.get('limit', 50, type=int) or 50, 200))

    history = ledger.history(student_id, limit=limit)
    history['reconciliation'] = ledger.reconcile(student_id).to_dict()
    return success_response(data=history)
