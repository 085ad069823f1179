"""Utility functions for the boris_chat package."""

import uuid


def normalize_base_url(url: str) -> str:
    """Strip whitespace and trailing slashes from a backend base URL."""
    return url.strip().rstrip("/")


def generate_id(prefix: str = "") -> str:
    """Return a short random identifier, optionally prefixed.

    Args:
        prefix: Prepended as ``{prefix}_`` when given

    Returns:
        Identifier string such as ``msg_3f2a9c...``
    """
    token = uuid.uuid4().hex[:16]
    return f"{prefix}_{token}" if prefix else token
