"""Content addressing for staged documents."""

import hashlib
import uuid
from typing import Optional

from search_rebuilder.core.config import KeyMode

DEFAULT_EXTENSION = ".json"


def content_digest(payload: Optional[bytes]) -> str:
    """Return a 32 character hex digest of the payload.

    MD5 is used for addressing only, not for security.
    """
    if not payload:
        raise ValueError("Cannot compute a content digest for an empty payload")
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()


def object_key(
    payload: Optional[bytes],
    mode: KeyMode = KeyMode.CONTENT,
    extension: str = DEFAULT_EXTENSION,
) -> str:
    """Derive the storage key for a payload."""
    if mode == KeyMode.RANDOM:
        if not payload:
            raise ValueError("Cannot store an empty payload")
        return f"{uuid.uuid4().hex}{extension}"
    return f"{content_digest(payload)}{extension}"
