"""Identifier and timestamp helpers."""

import secrets
import time

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
RANDOM_SUFFIX_LENGTH = 7


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a unique id: base-36 timestamp, a dash, and a random suffix.

    Ids created later tend to sort later, but ordering is not guaranteed.
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(RANDOM_SUFFIX_LENGTH))
    return f"{to_base36(now_ms())}-{suffix}"
