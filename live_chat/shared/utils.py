"""Shared validation helpers used by the server and the console client."""
import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_email_valid(email: str) -> bool:
    """Return True if email looks like ``name@domain.tld``."""
    return bool(EMAIL_RE.fullmatch(email or ""))


def is_password_strong(password: str, min_length: int = 8) -> bool:
    """Return True if password has lower and upper case letters, a digit and enough length."""
    if len(password) < min_length:
        return False
    if not re.search(r"[a-z]", password):
        return False
    if not re.search(r"[A-Z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    return True


def clean_text(value):
    """Strip surrounding whitespace, mapping blank strings to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
