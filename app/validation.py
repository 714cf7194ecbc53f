"""Structural validation of incoming events"""
from typing import Any, NamedTuple, Optional

from pydantic import ValidationError as ModelValidationError

from errors import ValidationError
from models import RawEvent, REQUIRED_FIELDS

TIMESTAMP_MESSAGE = "Invalid timestamp format. Use ISO format (e.g., 2025-11-12T19:30:01Z)"


class Rejection(NamedTuple):
    field: str
    reason: str


def to_rejection(error: dict) -> Rejection:
    """Map the first pydantic error of a RawEvent to a field and reason"""
    if error["type"] == "invalid_event_type":
        return Rejection("event_type", error["msg"])

    # non-mapping input fails before any field is looked at
    field = str(error["loc"][0]) if error["loc"] else REQUIRED_FIELDS[0]
    if field == "timestamp":
        return Rejection(field, TIMESTAMP_MESSAGE)
    if error["type"] == "string_type" and error.get("input") is not None:
        return Rejection(field, f"{field} must be a string")
    return Rejection(field, f"Missing required field: {field}")


def parse_event(raw: Any) -> RawEvent:
    """Validate a raw event, raising ValidationError on the first problem"""
    try:
        return RawEvent.model_validate(raw)
    except ModelValidationError as e:
        rejection = to_rejection(e.errors()[0])
        raise ValidationError(rejection.field, rejection.reason) from e


def validate_event(raw: Any) -> Optional[Rejection]:
    """Return the first problem found in a raw event, or None if it is valid"""
    try:
        parse_event(raw)
    except ValidationError as e:
        return Rejection(e.field, e.message)
    return None
