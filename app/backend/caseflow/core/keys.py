"""Business key derivation."""

from __future__ import annotations

KEY_SEPARATOR = "|"


def normalize_part(value: str | None) -> str:
    return (value or "").strip().lower()


def generate_key(*parts: str | None) -> str:
    """Lowercase-trimmed composite key, e.g. ``"client|project|location"``.

    Missing parts become empty strings so the arity stays visible.
    """

    return KEY_SEPARATOR.join(normalize_part(part) for part in parts)


def normalize_email(value: str | None) -> str:
    return normalize_part(value)
