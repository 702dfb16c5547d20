"""
PURPOSE: Function-signature registry for Pine Script indicators and comparators.

One immutable table describes every function the compiler can emit: its Pine
call name, ordered parameter schema, named outputs, cross-parameter rules and
plot styling. Validation, variable binding and emission all read from here,
so indicator-specific knowledge lives in exactly one place.

CALLED BY:
    - compiler/validator.py (parameter and custom-rule checks)
    - compiler/binder.py (output arity)
    - compiler/emitter.py (call syntax, inputs, plots)
"""

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from pinegraph.config.constants import PRICE_SOURCES, ParamType
from pinegraph.utils.validators import coerce_number, is_integral

INDICATOR = "indicator"
COMPARATOR = "comparator"

MAX_LENGTH = 5000


@dataclass(frozen=True)
class ParameterSpec:
    """
    PURPOSE: Declared schema of one function parameter.

    Attributes:
        name: Parameter name as it appears in node config.
        type: Declared type (int, float, bool, string, source).
        required: Whether the node config must supply a value.
        default: Value used when the config omits the parameter.
        min: Inclusive lower bound for numeric parameters.
        max: Inclusive upper bound for numeric parameters.
        options: Allowed values for enum-like parameters.
        description: Human-readable description.
    """

    name: str
    type: ParamType
    required: bool = True
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    options: Tuple[str, ...] = ()
    description: str = ""

    @property
    def is_input(self) -> bool:
        """True if the parameter becomes a user input declaration."""
        return self.type in (ParamType.INT, ParamType.FLOAT, ParamType.BOOL, ParamType.STRING)

    @property
    def uses_input_variable(self) -> bool:
        """True if the call site references the input variable instead of a literal."""
        return self.type in (ParamType.INT, ParamType.FLOAT, ParamType.BOOL)

    def check(self, value: Any, path: str) -> List[str]:
        """
        PURPOSE: Validate one supplied value against this schema.

        Args:
            value: Value from the node config.
            path: "<indicatorId>.<param>" used in messages.

        Returns:
            List[str]: Error messages; empty when the value is acceptable.
        """
        if self.type == ParamType.INT:
            if not is_integral(value):
                return [f"Parameter {path} must be an integer"]
        elif self.type == ParamType.FLOAT:
            if coerce_number(value) is None:
                return [f"Parameter {path} must be a number"]
        elif self.type == ParamType.BOOL:
            if not isinstance(value, bool):
                return [f"Parameter {path} must be a boolean"]
        elif not isinstance(value, str):
            return [f"Parameter {path} must be a string"]

        errors: List[str] = []
        number = coerce_number(value) if self.type in (ParamType.INT, ParamType.FLOAT) else None
        if number is not None:
            if self.min is not None and number < self.min:
                errors.append(f"Parameter {path} must be >= {_fmt_bound(self.min)}")
            if self.max is not None and number > self.max:
                errors.append(f"Parameter {path} must be <= {_fmt_bound(self.max)}")

        if self.options and str(value).strip() not in self.options:
            errors.append(f"Parameter {path} must be one of: {', '.join(self.options)}")
        return errors


@dataclass(frozen=True)
class ReferenceLine:
    """Fixed horizontal line plotted with an oscillator."""

    value: float
    title: str
    color: str


@dataclass(frozen=True)
class FunctionSignature:
    """
    PURPOSE: Immutable description of one emit-able Pine function.

    Attributes:
        name: Registry key (the node's indicatorId), e.g. "rsi".
        function: Pine function called at the computation site, e.g. "ta.rsi".
        parameters: Ordered parameter schema; order is call-argument order.
        outputs: Ordered output suffixes; empty for single-value functions.
        category: "indicator" or "comparator".
        title: Display name used in plot titles and comments.
        validator: Cross-parameter rule over the merged parameter set.
        helper: Pine function definition the call depends on, if any.
        colors: Plot color per output (or one color for single-value).
        reference_lines: Horizontal lines plotted alongside (oscillators).
        histogram_outputs: Outputs plotted with histogram style.
    """

    name: str
    function: str
    parameters: Tuple[ParameterSpec, ...]
    outputs: Tuple[str, ...] = ()
    category: str = INDICATOR
    title: str = ""
    validator: Optional[Callable[[Mapping[str, Any]], List[str]]] = None
    helper: Optional[str] = None
    colors: Tuple[str, ...] = ("color.blue",)
    reference_lines: Tuple[ReferenceLine, ...] = ()
    histogram_outputs: Tuple[str, ...] = ()

    @property
    def is_tuple(self) -> bool:
        return bool(self.outputs)

    @property
    def arity(self) -> int:
        return len(self.outputs) or 1

    @property
    def is_oscillator(self) -> bool:
        return bool(self.reference_lines)

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        return None

    def resolve_parameters(self, given: Mapping[str, Any]) -> Dict[str, Any]:
        """Declared parameters with config values over defaults, in call order."""
        return {
            spec.name: given[spec.name] if spec.name in given else spec.default
            for spec in self.parameters
        }

    def run_validator(self, given: Mapping[str, Any]) -> List[str]:
        if self.validator is None:
            return []
        return list(self.validator(self.resolve_parameters(given)))

    def call(self, args: Sequence[str]) -> str:
        return f"{self.function}({', '.join(args)})"

    def color_for(self, index: int) -> str:
        return self.colors[index] if index < len(self.colors) else self.colors[-1]


class FunctionRegistry:
    """
    PURPOSE: Read-only lookup table of function signatures.

    Built once per compiler (or shared between compilers); the table is a
    mapping proxy over frozen dataclasses and cannot change after
    construction.

    CALLED BY: compiler/generator.py, compiler/validator.py, compiler/binder.py,
        compiler/emitter.py
    """

    def __init__(self, signatures: Iterable[FunctionSignature]) -> None:
        table: Dict[str, FunctionSignature] = {}
        for signature in signatures:
            key = signature.name.lower()
            if key in table:
                raise ValueError(f"Duplicate function signature: {signature.name}")
            table[key] = signature
        self._table: Mapping[str, FunctionSignature] = MappingProxyType(table)

    @classmethod
    def default(cls) -> "FunctionRegistry":
        """Registry with the standard indicator and comparator table."""
        return cls(_standard_signatures())

    def lookup(self, name: Any) -> Optional[FunctionSignature]:
        """
        PURPOSE: Find a signature by registry key.

        Args:
            name: Registry key, case-insensitive.

        Returns:
            Optional[FunctionSignature]: The signature, or None if not found.
        """
        if not isinstance(name, str) or not name.strip():
            return None
        return self._table.get(name.strip().lower())

    def lookup_indicator(self, name: Any) -> Optional[FunctionSignature]:
        """Like lookup() but only returns indicator-category signatures."""
        signature = self.lookup(name)
        if signature is None or signature.category != INDICATOR:
            return None
        return signature

    def outputs(self, name: Any) -> Tuple[str, ...]:
        """Ordered output suffixes for a tuple-output indicator, else ()."""
        signature = self.lookup(name)
        return signature.outputs if signature else ()

    def helper_names(self) -> Tuple[str, ...]:
        """Names of helper functions the generated script may define."""
        return tuple(sorted(s.function for s in self._table.values() if s.helper))

    def names(self) -> Tuple[str, ...]:
        return tuple(self._table)

    def __contains__(self, name: object) -> bool:
        return self.lookup(name) is not None

    def __iter__(self) -> Iterator[FunctionSignature]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)


# ------------------------------------------------------------------ #
#  Standard table
# ------------------------------------------------------------------ #

def _fmt_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _source(default: str = "close") -> ParameterSpec:
    return ParameterSpec(
        "source", ParamType.SOURCE, required=False, default=default,
        options=PRICE_SOURCES, description="Source series",
    )


def _length(name: str, default: int, description: str) -> ParameterSpec:
    return ParameterSpec(
        name, ParamType.INT, required=True, default=default,
        min=1, max=MAX_LENGTH, description=description,
    )


def _macd_lengths(params: Mapping[str, Any]) -> List[str]:
    fast = coerce_number(params.get("fastLength"))
    slow = coerce_number(params.get("slowLength"))
    if fast is not None and slow is not None and fast >= slow:
        return ["MACD fast length must be less than slow length"]
    return []


_STOCH_HELPER = """f_stoch(src, length, smoothK, smoothD) =>
    k = ta.sma(ta.stoch(src, high, low, length), smoothK)
    d = ta.sma(k, smoothD)
    [k, d]"""


def _moving_average(name: str, title: str, color: str) -> FunctionSignature:
    return FunctionSignature(
        name=name,
        function=f"ta.{name}",
        title=title,
        parameters=(_source(), _length("period", 20, "Number of bars averaged")),
        colors=(color,),
    )


@lru_cache(maxsize=1)
def _standard_signatures() -> Tuple[FunctionSignature, ...]:
    return (
        _moving_average("sma", "SMA", "color.blue"),
        _moving_average("ema", "EMA", "color.orange"),
        _moving_average("wma", "WMA", "color.teal"),
        _moving_average("vwma", "VWMA", "color.navy"),
        FunctionSignature(
            name="rsi",
            function="ta.rsi",
            title="RSI",
            parameters=(_source(), _length("period", 14, "Number of bars for RSI calculation")),
            colors=("color.purple",),
            reference_lines=(
                ReferenceLine(70, "Overbought", "color.red"),
                ReferenceLine(30, "Oversold", "color.green"),
            ),
        ),
        FunctionSignature(
            name="macd",
            function="ta.macd",
            title="MACD",
            parameters=(
                _source(),
                _length("fastLength", 12, "Fast EMA length"),
                _length("slowLength", 26, "Slow EMA length"),
                _length("signalLength", 9, "Signal line EMA length"),
            ),
            outputs=("line", "signal", "histogram"),
            validator=_macd_lengths,
            colors=("color.blue", "color.red", "color.gray"),
            histogram_outputs=("histogram",),
        ),
        FunctionSignature(
            name="bb",
            function="ta.bb",
            title="Bollinger Bands",
            parameters=(
                _source(),
                _length("period", 20, "Moving average length"),
                ParameterSpec(
                    "mult", ParamType.FLOAT, required=True, default=2.0,
                    min=0.1, max=10.0, description="Standard deviation multiplier",
                ),
            ),
            outputs=("middle", "upper", "lower"),
            colors=("color.orange", "color.red", "color.green"),
        ),
        FunctionSignature(
            name="stoch",
            function="f_stoch",
            title="Stochastic",
            parameters=(
                _source(),
                _length("period", 14, "Stochastic length"),
                _length("smoothK", 3, "%K smoothing"),
                _length("smoothD", 3, "%D smoothing"),
            ),
            outputs=("k", "d"),
            helper=_STOCH_HELPER,
            colors=("color.blue", "color.orange"),
            reference_lines=(
                ReferenceLine(80, "Overbought", "color.red"),
                ReferenceLine(20, "Oversold", "color.green"),
            ),
        ),
        FunctionSignature(
            name="atr",
            function="ta.atr",
            title="ATR",
            parameters=(_length("period", 14, "ATR calculation length"),),
            colors=("color.gray",),
        ),
        FunctionSignature(
            name="cci",
            function="ta.cci",
            title="CCI",
            parameters=(_source("hlc3"), _length("period", 20, "CCI length")),
            colors=("color.teal",),
            reference_lines=(
                ReferenceLine(100, "Upper", "color.red"),
                ReferenceLine(-100, "Lower", "color.green"),
            ),
        ),
        FunctionSignature(
            name="mfi",
            function="ta.mfi",
            title="MFI",
            parameters=(_source("hlc3"), _length("period", 14, "MFI length")),
            colors=("color.purple",),
            reference_lines=(
                ReferenceLine(80, "Overbought", "color.red"),
                ReferenceLine(20, "Oversold", "color.green"),
            ),
        ),
        FunctionSignature(
            name="mom",
            function="ta.mom",
            title="Momentum",
            parameters=(_source(), _length("period", 10, "Momentum lookback")),
            colors=("color.blue",),
            reference_lines=(ReferenceLine(0, "Zero", "color.gray"),),
        ),
        FunctionSignature(
            name="roc",
            function="ta.roc",
            title="ROC",
            parameters=(_source(), _length("period", 10, "Rate of change lookback")),
            colors=("color.blue",),
            reference_lines=(ReferenceLine(0, "Zero", "color.gray"),),
        ),
        FunctionSignature(
            name="dmi",
            function="ta.dmi",
            title="DMI",
            parameters=(
                _length("diLength", 14, "Directional indicator length"),
                _length("adxSmoothing", 14, "ADX smoothing"),
            ),
            outputs=("plus", "minus", "adx"),
            colors=("color.green", "color.red", "color.yellow"),
            reference_lines=(ReferenceLine(25, "Trend Threshold", "color.gray"),),
        ),
        FunctionSignature(
            name="vwap",
            function="ta.vwap",
            title="VWAP",
            parameters=(_source("hlc3"),),
            colors=("color.yellow",),
        ),
        FunctionSignature(
            name="crossover",
            function="ta.crossover",
            title="Crossover",
            category=COMPARATOR,
            parameters=(
                ParameterSpec("source1", ParamType.SOURCE, description="First series"),
                ParameterSpec("source2", ParamType.SOURCE, description="Second series"),
            ),
        ),
        FunctionSignature(
            name="crossunder",
            function="ta.crossunder",
            title="Crossunder",
            category=COMPARATOR,
            parameters=(
                ParameterSpec("source1", ParamType.SOURCE, description="First series"),
                ParameterSpec("source2", ParamType.SOURCE, description="Second series"),
            ),
        ),
    )
