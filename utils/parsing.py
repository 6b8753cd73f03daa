"""Boundary parsing: request values are validated here once, never re-cast in services."""
from datetime import date

from services.errors import ValidationError


def parse_id(value, name: str = "id") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{name} must be a positive integer")
    if parsed <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


def parse_date(value, name: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {name}. Use YYYY-MM-DD")


def parse_optional_date(value, name: str = "date"):
    if value in (None, ""):
        return None
    return parse_date(value, name)


def pick_fields(data, allowed) -> dict:
    """
    Return only the allow-listed keys of a JSON body.
    Any other key is rejected instead of silently merged onto a model.
    """
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValidationError(f"Fields not allowed: {', '.join(unknown)}")
    return {k: data[k] for k in allowed if k in data}
