from __future__ import annotations
from typing import Mapping, Optional, Tuple

from dualtodo.errors import ValidationError

MIN_PASSWORD_LENGTH = 6


def _field(data: Optional[Mapping], name: str) -> str:
    value = (data or {}).get(name)
    if value is None:
        return ""
    return str(value).strip() if name != "password" else str(value)


def validate_registration(data: Optional[Mapping], missing_message: str = "All fields are required") -> Tuple[str, str, str]:
    """Return (username, email, password) or raise ValidationError.

    Runs before any store is touched.
    """
    username, email, password = _field(data, "username"), _field(data, "email"), _field(data, "password")
    if not username or not email or not password:
        raise ValidationError(missing_message)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return username, email.lower(), password


def validate_credentials(data: Optional[Mapping]) -> Tuple[str, str]:
    email, password = _field(data, "email"), _field(data, "password")
    if not email or not password:
        raise ValidationError("Email and password are required")
    return email.lower(), password
