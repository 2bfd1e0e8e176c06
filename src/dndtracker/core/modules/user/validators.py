import re

from dndtracker.errors import ValidationError
from dndtracker.utils import is_email

BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")


def is_password_hashed(value: str) -> bool:
    return bool(BCRYPT_HASH_RE.fullmatch(value))


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - Minimum length of 8 characters
    - At least one letter and one digit
    - No whitespace characters
    - Not something that already looks like a bcrypt hash

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    if any(char.isspace() for char in password):
        raise ValidationError("Password cannot contain whitespace characters")

    if not any(char.isalpha() for char in password) or not any(char.isdigit() for char in password):
        raise ValidationError("Password must contain at least one letter and one digit")

    if is_password_hashed(password):
        raise ValidationError("Invalid password format")


def validate_email(email: str) -> str:
    """Return the normalized address or raise ValidationError."""
    normalized = email.strip().lower()
    if not is_email(normalized):
        raise ValidationError("Invalid email address")
    return normalized


def validate_username(username: str) -> None:
    if not USERNAME_RE.fullmatch(username):
        raise ValidationError("Username must be 3-30 characters: letters, digits, '_' or '-'")
