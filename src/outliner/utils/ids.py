"""ID utilities."""

from __future__ import annotations

import uuid


def new_id() -> str:
    """Return a fresh globally unique identifier for a node or outline."""

    return str(uuid.uuid4())
