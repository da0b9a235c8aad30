import time
from typing import Any, Optional


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def as_text(value: Any, default: str = "") -> str:
    """Coerce a loosely typed remote value to text, falling back to ``default``."""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value).lower() if isinstance(value, bool) else str(value)
    return default


def as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = as_text(value, default="")
    return text or None


def as_millis(value: Any, default: int) -> int:
    """Coerce an epoch-millis value; numeric strings are accepted, anything else defaults."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return default
    return default


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value
