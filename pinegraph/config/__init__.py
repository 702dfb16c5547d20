"""
PURPOSE: Export configuration settings and constants for pinegraph.

This module centralizes access to all configuration settings and constants
used throughout the strategy-graph compiler.
"""

from .constants import (
    ActionRole,
    ConditionOperator,
    MathOperation,
    NodeKind,
    OrderType,
    ParamType,
    PRICE_SOURCES,
)
from .settings import Settings, settings

__all__ = [
    "settings",
    "Settings",
    "NodeKind",
    "ConditionOperator",
    "OrderType",
    "ActionRole",
    "MathOperation",
    "ParamType",
    "PRICE_SOURCES",
]
