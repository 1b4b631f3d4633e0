"""ID and storage key helpers."""

from __future__ import annotations

import re
import uuid
from pathlib import PurePath

_UNSAFE_RE = re.compile(r"[^\w.\-]")


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def upload_key(file_name: str, folder: str = "uploads") -> str:
    """Return a collision-resistant object key for an uploaded file."""
    name = _UNSAFE_RE.sub("_", PurePath(file_name).name).strip("._")[:120] or "upload"
    return f"{folder}/{uuid.uuid4().hex}-{name}"
