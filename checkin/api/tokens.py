"""Student token API endpoints."""
from flask import Blueprint, current_app, request
from checkin import db, limiter
from checkin.services.permissions import Capability
from checkin.services.qr_service import QRService
from checkin.services.token_service import TokenService
from checkin.utils.decorators import capability_required, current_actor
from checkin.utils.errors import CheckinError
from checkin.utils.helpers import success_response, error_response
from checkin.utils.validators import Validator

tokens_bp = Blueprint('tokens', __name__)

@tokens_bp.route('/student', methods=['POST'])
@capability_required(Capability.ISSUE_STUDENT_TOKEN)
@limiter.limit("300 per hour")
def issue_student_token():
    """Issue a single-use attendance token for one student."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['student_id'])

    student_id = Validator.parse_id(data['student_id'], 'student_id')
    session_id = data.get('session_id')
    if session_id is not None:
        session_id = Validator.parse_id(session_id, 'session_id')

    try:
        issued = TokenService.issue_student_token(
            student_id=student_id,
            actor=current_actor(),
            session_id=session_id
        )
    except CheckinError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error issuing token for student %s", student_id)
        return error_response("Failed to generate token", 500, code='internal')

    return success_response(
        data={
            'token': issued.token,
            'expires_at': issued.expires_at.isoformat(),
            'student_name': issued.student.full_name,
            'credits_remaining': issued.credits_remaining,
            'qr_image': QRService.render(issued.token)
        },
        message="Token issued"
    )
