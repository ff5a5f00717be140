import html
import re
from typing import Optional

# Control characters except tab, newline and carriage return
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """HTML-escape a short value such as a tag. Non-strings pass through."""
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> Optional[str]:
    """
    Clean free text (booking notes, cancel reasons, milestone feedback).

    Length is checked before escaping, so the limit applies to what the user
    typed. Blank input becomes None.

    Raises:
        ValueError: If input is longer than max_length
    """
    if not value:
        return None

    text = str(value).strip()
    if len(text) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    return CONTROL_CHARS.sub("", html.escape(text, quote=True)) or None
