"""
PURPOSE: Fixed vocabularies shared by the strategy-graph compiler.

Node kinds, condition operators, order types, math operations and the Pine
Script names the binder must never hand out. These are closed sets: adding a
member here is a compiler change, not a configuration change.
"""

from enum import Enum


class NodeKind(str, Enum):
    """Tagged variant for strategy-graph nodes."""

    DATA_SOURCE = "data-source"
    INDICATOR = "indicator"
    CONDITION = "condition"
    ACTION = "action"
    RISK = "risk"
    TIMING = "timing"
    MATH = "math"


# Canvas node types that map onto a kind with a different name.
NODE_KIND_ALIASES = {
    "input": NodeKind.DATA_SOURCE,
    "datasource": NodeKind.DATA_SOURCE,
    "data_source": NodeKind.DATA_SOURCE,
}


class ConditionOperator(str, Enum):
    """Operators accepted by condition nodes."""

    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUAL_TO = "equal_to"
    NOT_EQUAL_TO = "not_equal_to"
    CROSSES_ABOVE = "crosses_above"
    CROSSES_BELOW = "crosses_below"


# Infix comparisons; the crossing operators map to registry comparators instead.
INFIX_OPERATORS = {
    ConditionOperator.GREATER_THAN: ">",
    ConditionOperator.LESS_THAN: "<",
    ConditionOperator.EQUAL_TO: "==",
    ConditionOperator.NOT_EQUAL_TO: "!=",
}

CROSSING_OPERATORS = {
    ConditionOperator.CROSSES_ABOVE: "crossover",
    ConditionOperator.CROSSES_BELOW: "crossunder",
}


class OrderType(str, Enum):
    """Order types accepted by action nodes."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"


class ActionRole(str, Enum):
    """Role of an action node in the generated strategy."""

    ENTRY = "entry"
    EXIT = "exit"


# Label fragments used when an action carries no explicit role.
ENTRY_LABEL_KEYWORDS = ("buy", "entry")
EXIT_LABEL_KEYWORDS = ("sell", "exit", "close")


class MathOperation(str, Enum):
    """Operations accepted by math nodes."""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    ABS = "abs"
    MAX = "max"
    MIN = "min"


class ParamType(str, Enum):
    """Declared type of a registry function parameter."""

    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    SOURCE = "source"


PRICE_SOURCES = ("open", "high", "low", "close", "hl2", "hlc3", "ohlc4", "hlcc4", "volume")

# Names the generated script defines itself.
LONG_CONDITION_VAR = "long_condition"
EXIT_CONDITION_VAR = "exit_condition"

PINE_RESERVED_NAMES = frozenset({
    # keywords
    "and", "or", "not", "if", "else", "for", "to", "by", "while", "switch",
    "var", "varip", "true", "false", "na", "import", "export", "method",
    "type", "enum", "continue", "break", "series", "simple", "const",
    "int", "float", "bool", "string", "color", "line", "label", "box",
    "table", "array", "matrix", "map",
    # built-in series and namespaces
    "open", "high", "low", "close", "volume", "hl2", "hlc3", "ohlc4", "hlcc4",
    "time", "timenow", "bar_index", "last_bar_index", "ta", "math", "str",
    "strategy", "input", "plot", "plotshape", "hline", "bgcolor", "fill",
    "request", "syminfo", "timeframe", "location", "shape", "size", "display",
    "session", "barstate", "alert", "alertcondition", "indicator", "library",
    "position", "format", "currency", "dayofweek", "year", "month", "hour",
    "minute", "second", "nz", "fixnan",
    # compiler-owned
    LONG_CONDITION_VAR, EXIT_CONDITION_VAR,
})
