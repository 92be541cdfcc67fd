from typing import Optional


def parse_int_param(raw: Optional[str], default: int, minimum: int, maximum: Optional[int] = None) -> int:
    """Lenient query int: non-numeric falls back to default, result clamped to bounds"""
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value
