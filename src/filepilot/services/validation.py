from __future__ import annotations

import re

from filepilot.core.errors import ValidationError

MAX_NAME_LENGTH = 255
_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00]')


def validate_name(name: str) -> str:
    """Return the name unchanged or raise ValidationError."""
    if not name or not name.strip():
        raise ValidationError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("Name is too long")
    if name in (".", ".."):
        raise ValidationError("Name is reserved")
    if _INVALID_CHARS.search(name):
        raise ValidationError("Name contains invalid characters")
    return name
