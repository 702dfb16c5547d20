"""
PURPOSE: Small text helpers for writing Pine Script source.
"""

import re
from typing import Any

_STRING_LITERAL = re.compile(r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\'')
_LINE_COMMENT = re.compile(r"//[^\n]*")


def pine_string(text: Any) -> str:
    """Quote text as a Pine string literal on a single line."""
    value = " ".join(str(text).split())
    value = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{value}"'


def comment_text(text: Any) -> str:
    """Collapse text to one line so it can follow a // marker."""
    return " ".join(str(text).split())


def format_number(value: Any, as_int: bool = False) -> str:
    """
    PURPOSE: Render a number as a Pine literal.

    Integral values print without a decimal point unless the parameter is a
    float, in which case Pine needs the literal to read as float ("2.0").

    Args:
        value: int or float value.
        as_int: Force integer rendering.

    Returns:
        str: Pine numeric literal.
    """
    if as_int:
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def format_float(value: Any) -> str:
    """Render a number as a Pine float literal (always has a decimal point)."""
    number = float(value)
    text = repr(number)
    if "." not in text and "e" not in text and "inf" not in text:
        text += ".0"
    return text


def session_string(start: str, end: str) -> str:
    """Turn "09:30" and "16:00" into the Pine session string "0930-1600"."""
    return f"{start.strip().replace(':', '')}-{end.strip().replace(':', '')}"


def strip_strings_and_comments(code: str) -> str:
    """Remove string literals and // comments, leaving only code tokens."""
    without_strings = _STRING_LITERAL.sub('""', code)
    return _LINE_COMMENT.sub("", without_strings)
