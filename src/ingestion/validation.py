from typing import Any, Optional

MAX_FIELD_LENGTH = 100


def _is_missing(value: Any) -> bool:
    # Objects and arrays count as present, any other falsy value as missing
    if isinstance(value, (dict, list)):
        return False
    return not value


def validate_tracking_event(payload: Any) -> Optional[str]:
    """
    Checks the required fields of a raw tracking payload.
    Returns the message of the first failing rule, or None when valid.
    Never raises, whatever JSON value it is handed.
    """
    if not isinstance(payload, dict):
        return "Missing required field: event"

    event = payload.get("event")
    user_id = payload.get("userId")

    if _is_missing(event):
        return "Missing required field: event"

    if _is_missing(user_id):
        return "Missing required field: userId"

    if not isinstance(event, str) or len(event) > MAX_FIELD_LENGTH:
        return "Invalid event name"

    if not isinstance(user_id, str) or len(user_id) > MAX_FIELD_LENGTH:
        return "Invalid userId"

    return None
