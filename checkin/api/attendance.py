"""Attendance redemption API endpoints."""
from flask import Blueprint, current_app, request
from checkin import db, limiter
from checkin.services.permissions import Capability
from checkin.services.redemption_engine import RedemptionEngine
from checkin.utils.decorators import capability_required, current_actor
from checkin.utils.errors import CheckinError
from checkin.utils.helpers import success_response, error_response
from checkin.utils.validators import Validator

attendance_bp = Blueprint('attendance', __name__)

@attendance_bp.route('/redeem', methods=['POST'])
@capability_required(Capability.REDEEM_STUDENT_TOKEN, Capability.REDEEM_SESSION_TOKEN)
@limiter.limit("120 per minute")
def redeem():
    """Redeem a session or student token for attendance."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['token', 'group_session_id'])

    if not isinstance(data['token'], str):
        return error_response("token must be a string", 400, code='invalid_input')
    group_session_id = Validator.parse_id(data['group_session_id'], 'group_session_id')

    try:
        result = RedemptionEngine.from_app().redeem(
            token=data['token'],
            group_session_id=group_session_id,
            actor=current_actor()
        )
    except CheckinError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error redeeming token for session %s", group_session_id)
        return error_response("Failed to process attendance", 500, code='internal')

    return success_response(data=result.to_dict(), message="Attendance recorded")
