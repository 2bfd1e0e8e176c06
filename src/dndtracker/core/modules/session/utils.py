import re
import secrets

SESSION_COOKIE_NAME = "session"
SESSION_ID_BYTES = 32
MIN_SESSION_ID_LENGTH = 32

SESSION_ID_RE = re.compile(r"^[a-zA-Z0-9]+$")
SESSION_COOKIE_RE = re.compile(rf"(?:^|;)\s*{SESSION_COOKIE_NAME}=([^;]+)")


def generate_session_id() -> str:
    """Return 64 hex characters from 32 bytes of secure randomness."""
    return secrets.token_hex(SESSION_ID_BYTES)


def is_valid_session_id(value: object) -> bool:
    """Cheap format check done before any store access."""
    return isinstance(value, str) and len(value) >= MIN_SESSION_ID_LENGTH and bool(SESSION_ID_RE.fullmatch(value))


def extract_session_id(cookie_header: str | None) -> str | None:
    if not cookie_header:
        return None
    match = SESSION_COOKIE_RE.search(cookie_header)
    return match.group(1).strip() if match else None
