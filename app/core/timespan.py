"""Public timeline delay thresholds such as "now", "1h", "2.5d", "1w", "3m", "1y"."""

import re
from datetime import timedelta
from typing import Optional

_THRESHOLD_RE = re.compile(r"^(\d+(\.\d+)?)([hdwmy])$", re.IGNORECASE)

# unit -> (hours per unit, max value ~20 years)
_UNITS = {
    "h": (1.0, 175200),
    "d": (24.0, 7300),
    "w": (24.0 * 7, 1043),
    "m": (24.0 * 30, 240),
    "y": (24.0 * 365, 20),
}


def is_valid_threshold(threshold: Optional[str]) -> bool:
    if not threshold or not threshold.strip():
        return False
    if threshold.strip().lower() == "now":
        return True
    match = _THRESHOLD_RE.match(threshold.strip())
    if not match:
        return False
    value = float(match.group(1))
    hours_per_unit, max_value = _UNITS[match.group(3).lower()]
    # Minimum is 0.1 hour regardless of unit
    return value * hours_per_unit >= 0.1 and value <= max_value


def parse_threshold(threshold: Optional[str]) -> timedelta:
    """Empty and "now" mean no delay. Raises ValueError on anything else that does not parse."""
    if not threshold or threshold.strip().lower() == "now":
        return timedelta(0)
    match = _THRESHOLD_RE.match(threshold.strip())
    if not match:
        raise ValueError(f"Invalid time threshold: {threshold}")
    value = float(match.group(1))
    hours_per_unit, _ = _UNITS[match.group(3).lower()]
    return timedelta(hours=value * hours_per_unit)
