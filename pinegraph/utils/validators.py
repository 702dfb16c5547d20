"""
PURPOSE: Value validation helpers for node configuration fields.
Ensures user-entered configuration is usable before any code is emitted.
"""

import math
import re
from typing import Any, Optional, Tuple, Union

Number = Union[int, float]

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def coerce_number(value: Any) -> Optional[Number]:
    """
    PURPOSE: Interpret a configuration value as a number.

    Canvas editors hand back numbers as strings often enough that "14" has to
    be accepted. Booleans are rejected even though Python treats them as ints.

    Args:
        value: Raw configuration value.

    Returns:
        Optional[Number]: int or float, or None when the value is not numeric.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return None


def is_integral(value: Any) -> bool:
    """
    PURPOSE: Check that a value is a whole number (14 and 14.0 both qualify).

    Args:
        value: Raw configuration value.

    Returns:
        bool: True if the value coerces to a number with no fractional part.
    """
    number = coerce_number(value)
    if number is None:
        return False
    return float(number).is_integer()


def validate_time_of_day(value: Any) -> bool:
    """
    PURPOSE: Validate a 24-hour HH:MM time string.

    Args:
        value: Raw configuration value.

    Returns:
        bool: True for strings such as "09:30" or "23:59", False otherwise.
    """
    return isinstance(value, str) and _TIME_OF_DAY.match(value.strip()) is not None


def validate_percentage(value: Any) -> bool:
    """
    PURPOSE: Validate a strictly positive percentage such as a stop-loss distance.

    Args:
        value: Raw configuration value.

    Returns:
        bool: True if value is a number greater than 0, False otherwise.
    """
    number = coerce_number(value)
    return number is not None and number > 0


def parse_quantity(value: Any) -> Optional[Tuple[float, bool]]:
    """
    PURPOSE: Parse an action quantity into an amount and a percent flag.

    Accepts plain numbers (contracts) and strings ending in "%" (percent of
    equity), e.g. 2, "2", "25%".

    Args:
        value: Raw quantity value.

    Returns:
        Optional[Tuple[float, bool]]: (amount, is_percent), or None when the
            value is not a positive quantity.
    """
    is_percent = False
    if isinstance(value, str) and value.strip().endswith("%"):
        is_percent = True
        value = value.strip()[:-1]
    number = coerce_number(value)
    if number is None or number <= 0:
        return None
    return float(number), is_percent
