"""Group session API endpoints."""
from flask import Blueprint, current_app, request
from checkin import db, limiter
from checkin.services.permissions import Capability
from checkin.services.qr_service import QRService
from checkin.services.session_service import SessionService
from checkin.utils.decorators import capability_required, current_actor
from checkin.utils.errors import CheckinError
from checkin.utils.helpers import success_response, error_response
from checkin.utils.validators import Validator

sessions_bp = Blueprint('sessions', __name__)

@sessions_bp.route('/start', methods=['POST'])
@capability_required(Capability.START_SESSION)
@limiter.limit("60 per hour")
def start_session():
    """Start a group session and return its window token."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['group_id', 'session_date', 'start_time'])

    group_id = Validator.parse_id(data['group_id'], 'group_id')
    session_date = Validator.parse_date(data['session_date'], 'session_date')
    start_time = Validator.parse_time(data['start_time'], 'start_time')
    notes = Validator.optional_text(data, 'notes', max_length=2000)

    try:
        started = SessionService.start_session(
            group_id=group_id,
            session_date=session_date,
            start_time=start_time,
            actor=current_actor(),
            notes=notes
        )
    except CheckinError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error starting session for group %s", group_id)
        return error_response("Failed to start session", 500, code='internal')

    return success_response(
        data={
            'session': started.session.to_dict(),
            'token': started.token,
            'expires_at': started.expires_at.isoformat(),
            'reused': started.reused,
            'qr_image': QRService.render(started.token)
        },
        message="Session already running" if started.reused else "Session started"
    )

@sessions_bp.route('/<int:session_id>/cancel', methods=['POST'])
@capability_required(Capability.CANCEL_SESSION)
def cancel_session(session_id):
    """Cancel a scheduled or active session."""
    try:
        session = SessionService.cancel_session(session_id, current_actor())
    except CheckinError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error cancelling session %s", session_id)
        return error_response("Failed to cancel session", 500, code='internal')

    return success_response(data={'session': session.to_dict()}, message="Session cancelled")
