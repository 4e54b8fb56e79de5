"""Helper functions for the application."""
import calendar
from datetime import datetime, timezone
from flask import jsonify
from typing import Any

def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code

def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code

def error_response(message: str, status_code: int = 400, code: str = None):
    """Return consistent error response."""
    response = {
        'error': True,
        'message': message,
        'status_code': status_code
    }
    if code:
        response['code'] = code

    return jsonify(response), status_code

def utcnow() -> datetime:
    """Naive UTC wall-clock time, matching what the store persists."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_epoch(moment: datetime) -> int:
    """Whole seconds since the epoch for a naive UTC datetime."""
    return calendar.timegm(moment.utctimetuple())

def from_epoch(seconds: int) -> datetime:
    """Naive UTC datetime for epoch seconds."""
    return datetime.fromtimestamp(seconds, timezone.utc).replace(tzinfo=None)
