"""Validation utilities for request bodies."""
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Any

from checkin.utils.errors import CheckinError, ErrorKind

class Validator:
    """Validation helper class.

    Every method raises ``CheckinError(INVALID_INPUT)`` on bad input so
    routes can map it straight to a 400 response.
    """

    @staticmethod
    def require_json(data: Any) -> Dict:
        """Ensure the request carried a JSON object."""
        if not isinstance(data, dict):
            raise CheckinError(ErrorKind.INVALID_INPUT, "Request body must be a JSON object")
        return data

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> None:
        """Validate required fields in data."""
        missing = [field for field in required_fields
                   if field not in data or data[field] in (None, '')]

        if missing:
            raise CheckinError(
                ErrorKind.INVALID_INPUT,
                f"Missing required field(s): {', '.join(missing)}"
            )

    @staticmethod
    def parse_id(value: Any, field: str) -> int:
        """Parse a positive integer identifier."""
        if isinstance(value, bool):
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be an integer id")
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be an integer id")
        if parsed <= 0 or str(parsed) != str(value).strip():
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be an integer id")
        return parsed

    @staticmethod
    def parse_date(value: Any, field: str) -> date:
        """Parse YYYY-MM-DD."""
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be YYYY-MM-DD")

    @staticmethod
    def parse_time(value: Any, field: str) -> time:
        """Parse HH:MM or HH:MM:SS."""
        try:
            return time.fromisoformat(str(value))
        except ValueError:
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be HH:MM or HH:MM:SS")

    @staticmethod
    def parse_amount(value: Any) -> Decimal:
        """Parse a positive money amount with at most two decimals."""
        if isinstance(value, bool):
            raise CheckinError(ErrorKind.INVALID_INPUT, "amount must be a number")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise CheckinError(ErrorKind.INVALID_INPUT, "amount must be a number")
        if not amount.is_finite() or amount <= 0:
            raise CheckinError(ErrorKind.INVALID_INPUT, "amount must be greater than zero")
        if amount.as_tuple().exponent < -2:
            raise CheckinError(ErrorKind.INVALID_INPUT, "amount has too many decimal places")
        return amount

    @staticmethod
    def parse_credits(value: Any) -> int:
        """Parse a positive whole number of credits."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise CheckinError(ErrorKind.INVALID_INPUT, "credits_added must be a whole number")
        if value <= 0:
            raise CheckinError(ErrorKind.INVALID_INPUT, "credits_added must be greater than zero")
        return value

    @staticmethod
    def optional_text(data: Dict, field: str, max_length: int = 255):
        """Return a stripped optional string field."""
        value = data.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} must be a string")
        value = value.strip()
        if len(value) > max_length:
            raise CheckinError(ErrorKind.INVALID_INPUT, f"{field} is too long")
        return value or None
