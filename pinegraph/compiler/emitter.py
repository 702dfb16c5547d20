"""
PURPOSE: Writes Pine Script for a validated, ordered and bound strategy graph.

Output is five banner-separated sections:
    1. version / strategy() header
    2. input declarations for indicator parameters
    3. indicator (and math) computations in dependency order
    4. strategy logic: conditions, entry/exit groups, risk exits
    5. plots, oscillator reference lines and entry/exit markers

The emitter trusts its input: the driver only calls emit() after validation
passed. emit_fallback() produces the minimal script returned on failure.

CALLED BY:
    - compiler/generator.py
"""

from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Set

from pinegraph.compiler.binder import VariableBindings
from pinegraph.compiler.registry import FunctionRegistry, FunctionSignature, ParameterSpec
from pinegraph.config.constants import (
    CROSSING_OPERATORS,
    ENTRY_LABEL_KEYWORDS,
    EXIT_CONDITION_VAR,
    EXIT_LABEL_KEYWORDS,
    INFIX_OPERATORS,
    LONG_CONDITION_VAR,
    ActionRole,
    ConditionOperator,
    MathOperation,
    NodeKind,
    OrderType,
    ParamType,
)
from pinegraph.config.settings import Settings
from pinegraph.schemas.graph import Edge, Node
from pinegraph.utils.pine import (
    comment_text,
    format_float,
    format_number,
    pine_string,
    session_string,
)
from pinegraph.utils.validators import coerce_number, parse_quantity

BANNER = "// " + "=" * 77

_MATH_INFIX = {
    MathOperation.ADD.value: "+",
    MathOperation.SUBTRACT.value: "-",
    MathOperation.MULTIPLY.value: "*",
    MathOperation.DIVIDE.value: "/",
}


def action_roles(node: Node) -> FrozenSet[ActionRole]:
    """
    PURPOSE: Decide which groups an action node belongs to.

    An explicit ``role`` in the config wins and gives exactly that group.
    Otherwise the label decides, with each group tested on its own:
    "buy"/"entry" joins the entry group and "sell"/"exit"/"close" joins the
    exit group, so a label such as "Close Entry" lands in both.

    Args:
        node: Action node.

    Returns:
        FrozenSet[ActionRole]: The groups; empty when no keyword matches.
    """
    role = node.config.get("role")
    if role in (ActionRole.ENTRY.value, ActionRole.EXIT.value):
        return frozenset({ActionRole(role)})
    label = node.label.lower()
    roles = set()
    if any(word in label for word in ENTRY_LABEL_KEYWORDS):
        roles.add(ActionRole.ENTRY)
    if any(word in label for word in EXIT_LABEL_KEYWORDS):
        roles.add(ActionRole.EXIT)
    return frozenset(roles)


class _GraphView:
    """Read-only lookups over one graph used while emitting."""

    def __init__(self, nodes: Sequence[Node], edges: Sequence[Edge], order: Sequence[Node]) -> None:
        self.nodes = list(nodes)
        self.order = list(order)
        self._incoming: Dict[str, Set[str]] = {}
        for edge in edges:
            self._incoming.setdefault(edge.target, set()).add(edge.source)

    def upstream(self, node_id: str) -> List[Node]:
        """Nodes feeding node_id, in input order."""
        sources = self._incoming.get(node_id, set())
        return [node for node in self.nodes if node.id in sources]

    def ordered(self, kind: NodeKind) -> List[Node]:
        return [node for node in self.order if node.kind == kind]


class PineEmitter:
    """
    PURPOSE: Converts a validated strategy graph into Pine Script text.

    Stateless apart from its registry and settings; every emit() call works
    from its arguments only, so identical input gives identical text.

    CALLED BY: compiler/generator.py
    """

    def __init__(self, registry: FunctionRegistry, settings: Settings) -> None:
        self._registry = registry
        self._settings = settings

    # ------------------------------------------------------------------ #
    #  Public API
    # ------------------------------------------------------------------ #

    def emit(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        order: Sequence[Node],
        bindings: VariableBindings,
    ) -> str:
        """
        PURPOSE: Generate the complete strategy script.

        Args:
            nodes: Graph nodes in input order.
            edges: Graph edges in input order.
            order: Nodes in dependency order (from DependencyResolver).
            bindings: Identifiers from VariableBinder.

        Returns:
            str: Pine Script source ending in a newline.
        """
        view = _GraphView(nodes, edges, order)
        lines: List[str] = []
        lines.extend(self._header())
        lines.extend(self._inputs_section(view, bindings))
        lines.extend(self._computations_section(view, bindings))
        lines.extend(self._logic_section(view, bindings))
        lines.extend(self._plots_section(view, bindings))
        lines.extend(self._footer())
        return "\n".join(lines) + "\n"

    def emit_fallback(self, errors: Sequence[str]) -> str:
        """
        PURPOSE: Minimal, always-valid script used when compilation fails.

        Contains the version and strategy declaration, a plain price plot and
        the errors as comments.

        Args:
            errors: Error messages to list.

        Returns:
            str: Pine Script source ending in a newline.
        """
        lines = [
            f"//@version={self._settings.PINE_VERSION}",
            BANNER,
            "// ERROR: Strategy Generation Failed",
            BANNER,
            "//",
            "// The following errors were encountered:",
        ]
        lines.extend(f"// - {comment_text(error)}" for error in errors)
        lines.extend([
            "//",
            "// Please fix these issues and regenerate the strategy.",
            BANNER,
            "",
            f"strategy({pine_string(self._settings.fallback_title())}, overlay=true)",
            "",
            "// Basic price plot as fallback",
            'plot(close, title="Price", color=color.blue)',
            "",
            "// Error indicator",
            'bgcolor(color.new(color.red, 90), title="Error Background")',
        ])
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------ #
    #  Section 1: header
    # ------------------------------------------------------------------ #

    def _header(self) -> List[str]:
        s = self._settings
        declaration = (
            f"strategy({pine_string(s.STRATEGY_TITLE)}, "
            f"overlay={'true' if s.OVERLAY else 'false'}, "
            f"margin_long=100, margin_short=100, "
            f"initial_capital={format_number(s.INITIAL_CAPITAL)}, "
            f"default_qty_type=strategy.percent_of_equity, "
            f"default_qty_value={format_number(s.DEFAULT_QTY_PERCENT)}, "
            f"commission_type=strategy.commission.percent, "
            f"commission_value={format_number(s.COMMISSION_PERCENT)}, "
            f"slippage={s.SLIPPAGE})"
        )
        return [
            f"//@version={s.PINE_VERSION}",
            BANNER,
            f"// {comment_text(s.STRATEGY_TITLE)}",
            "// Generated by pinegraph from a visual strategy graph",
            BANNER,
            "",
            declaration,
            "",
        ]

    @staticmethod
    def _banner(title: str) -> List[str]:
        return [BANNER, f"// {title}", BANNER, ""]

    # ------------------------------------------------------------------ #
    #  Section 2: inputs
    # ------------------------------------------------------------------ #

    def _inputs_section(self, view: _GraphView, bindings: VariableBindings) -> List[str]:
        lines = self._banner("Strategy Inputs")
        emitted = False
        for node in view.ordered(NodeKind.INDICATOR):
            signature = self._registry.lookup_indicator(node.indicator_id)
            if signature is None:
                continue
            params = node.parameters
            block: List[str] = []
            for spec in signature.parameters:
                name = bindings.input_name(node.id, spec.name)
                if not spec.is_input or name is None:
                    continue
                value = params.get(spec.name, spec.default)
                title = f"{node.label or signature.title} {spec.name[:1].upper()}{spec.name[1:]}"
                block.append(f"{name} = {self._input_call(spec, value, title)}")
            if block:
                lines.append(f"// {comment_text(node.label or signature.title)}")
                lines.extend(block)
                emitted = True
        if not emitted:
            lines.append("// No indicator inputs")
        lines.append("")
        return lines

    @staticmethod
    def _input_call(spec: ParameterSpec, value: Any, title: str) -> str:
        args: List[str]
        if spec.type == ParamType.INT:
            args = [format_number(coerce_number(value), as_int=True)]
            function = "input.int"
        elif spec.type == ParamType.FLOAT:
            args = [format_float(coerce_number(value))]
            function = "input.float"
        elif spec.type == ParamType.BOOL:
            args = ["true" if value else "false"]
            function = "input.bool"
        else:
            args = [pine_string(value)]
            function = "input.string"

        args.append(f"title={pine_string(title)}")
        if spec.type in (ParamType.INT, ParamType.FLOAT):
            as_int = spec.type == ParamType.INT
            render = (lambda v: format_number(v, as_int=True)) if as_int else format_float
            if spec.min is not None:
                args.append(f"minval={render(spec.min)}")
            if spec.max is not None:
                args.append(f"maxval={render(spec.max)}")
        if spec.type == ParamType.STRING and spec.options:
            args.append(f"options=[{', '.join(pine_string(o) for o in spec.options)}]")
        return f"{function}({', '.join(args)})"

    # ------------------------------------------------------------------ #
    #  Section 3: computations
    # ------------------------------------------------------------------ #

    def _computations_section(self, view: _GraphView, bindings: VariableBindings) -> List[str]:
        lines = self._banner("Technical Indicators")

        helpers: List[str] = []
        for node in view.ordered(NodeKind.INDICATOR):
            signature = self._registry.lookup_indicator(node.indicator_id)
            if signature is not None and signature.helper and signature.helper not in helpers:
                helpers.append(signature.helper)
        for helper in helpers:
            lines.extend(helper.splitlines())
            lines.append("")

        emitted = False
        for node in view.order:
            if node.kind == NodeKind.INDICATOR:
                code = self._indicator_line(view, bindings, node)
            elif node.kind == NodeKind.MATH:
                code = self._math_line(view, bindings, node)
            else:
                continue
            if code is None:
                continue
            lines.append(f"// {comment_text(node.label or node.kind.value)}")
            lines.append(code)
            lines.append("")
            emitted = True

        if not emitted:
            lines.append("// No indicators defined")
            lines.append("")
        return lines

    def _indicator_line(self, view: _GraphView, bindings: VariableBindings, node: Node) -> Optional[str]:
        signature = self._registry.lookup_indicator(node.indicator_id)
        names = bindings.get(node.id)
        if signature is None or not names:
            return None

        params = node.parameters
        args: List[str] = []
        for spec in signature.parameters:
            if spec.uses_input_variable:
                args.append(bindings.input_name(node.id, spec.name))
            elif spec.type == ParamType.SOURCE:
                args.append(self._source_argument(view, bindings, node, spec))
            else:
                args.append(pine_string(params.get(spec.name, spec.default)))

        call = signature.call(args)
        if signature.is_tuple:
            return f"[{', '.join(names)}] = {call}"
        return f"{names[0]} = {call}"

    def _source_argument(
        self, view: _GraphView, bindings: VariableBindings, node: Node, spec: ParameterSpec
    ) -> str:
        explicit = node.parameters.get(spec.name)
        if isinstance(explicit, str) and explicit.strip():
            return explicit.strip()
        upstream = self._upstream_series(view, bindings, node)
        return upstream or str(spec.default)

    def _math_line(self, view: _GraphView, bindings: VariableBindings, node: Node) -> Optional[str]:
        name = bindings.primary(node.id)
        if name is None:
            return None
        series = self._upstream_series(view, bindings, node) or "close"
        operation = node.config.get("operation")
        if operation == MathOperation.ABS.value:
            return f"{name} = math.abs({series})"

        value = self._literal(node.config.get("value", 0))
        if operation in _MATH_INFIX:
            return f"{name} = {series} {_MATH_INFIX[operation]} {value}"
        return f"{name} = math.{operation}({series}, {value})"

    def _upstream_series(
        self,
        view: _GraphView,
        bindings: VariableBindings,
        node: Node,
        output: Optional[str] = None,
    ) -> Optional[str]:
        """Series of the first upstream indicator, else the first upstream math node."""
        upstream = view.upstream(node.id)
        for kind in (NodeKind.INDICATOR, NodeKind.MATH):
            for source in upstream:
                if source.kind != kind:
                    continue
                if output:
                    named = bindings.output(source.id, output)
                    if named:
                        return named
                primary = bindings.primary(source.id)
                if primary:
                    return primary
        return None

    @staticmethod
    def _literal(value: Any) -> str:
        number = coerce_number(value)
        text = format_number(number if number is not None else 0)
        return f"({text})" if text.startswith("-") else text

    # ------------------------------------------------------------------ #
    #  Section 4: strategy logic
    # ------------------------------------------------------------------ #

    def _logic_section(self, view: _GraphView, bindings: VariableBindings) -> List[str]:
        lines = self._banner("Strategy Logic")
        conditions = view.ordered(NodeKind.CONDITION)
        timings = view.ordered(NodeKind.TIMING)
        actions = view.ordered(NodeKind.ACTION)

        if not conditions:
            lines.append("// No conditions defined")
            lines.append("")
        else:
            lines.append("// Trading Conditions")
            for node in conditions:
                lines.append(f"{bindings.primary(node.id)} = {self._condition_expression(view, bindings, node)}")
            lines.append("")

            timing_vars: List[str] = []
            if timings:
                lines.append("// Session Filters")
                for node in timings:
                    lines.append(f"{bindings.primary(node.id)} = {self._session_expression(node)}")
                    timing_vars.append(bindings.primary(node.id))
                lines.append("")

            entry_actions = [a for a in actions if ActionRole.ENTRY in action_roles(a)]
            exit_actions = [a for a in actions if ActionRole.EXIT in action_roles(a)]
            entry_vars = self._connected_conditions(view, bindings, conditions, entry_actions)
            exit_vars = self._connected_conditions(view, bindings, conditions, exit_actions)

            lines.append("// Entry Logic")
            entry_expr = " and ".join(entry_vars + timing_vars) if entry_vars else "false"
            lines.append(f"{LONG_CONDITION_VAR} = {entry_expr}")
            if entry_actions and entry_vars:
                lines.append(f"if {LONG_CONDITION_VAR}")
                for action in entry_actions:
                    lines.append(f"    {self._entry_statement(bindings, action)}")
            lines.append("")

            lines.append("// Exit Logic")
            exit_expr = " or ".join(exit_vars) if exit_vars else "false"
            lines.append(f"{EXIT_CONDITION_VAR} = {exit_expr}")
            if exit_actions and exit_vars:
                lines.append(f"if {EXIT_CONDITION_VAR}")
                for action in exit_actions:
                    comment = pine_string(bindings.primary(action.id))
                    lines.append(f"    strategy.close_all(comment={comment})")
            lines.append("")

        lines.extend(self._risk_lines(view, bindings))
        return lines

    def _condition_expression(self, view: _GraphView, bindings: VariableBindings, node: Node) -> str:
        config = node.config
        output = config.get("output") if isinstance(config.get("output"), str) else None
        series = self._upstream_series(view, bindings, node, output)
        if series is None:
            return "true"
        threshold = self._literal(config.get("threshold", 0))

        operator = ConditionOperator(config.get("operator", ConditionOperator.GREATER_THAN.value))
        if operator in CROSSING_OPERATORS:
            comparator = self._registry.lookup(CROSSING_OPERATORS[operator])
            return comparator.call([series, threshold])
        return f"{series} {INFIX_OPERATORS[operator]} {threshold}"

    @staticmethod
    def _session_expression(node: Node) -> str:
        session = session_string(node.config["startTime"], node.config["endTime"])
        timezone = node.config.get("timezone") or "UTC"
        return f"not na(time(timeframe.period, {pine_string(session)}, {pine_string(timezone)}))"

    @staticmethod
    def _connected_conditions(
        view: _GraphView,
        bindings: VariableBindings,
        conditions: Sequence[Node],
        actions: Sequence[Node],
    ) -> List[str]:
        """Variables of conditions feeding any of the actions, in condition order."""
        feeding: Set[str] = set()
        for action in actions:
            feeding.update(node.id for node in view.upstream(action.id))
        return [bindings.primary(node.id) for node in conditions if node.id in feeding]

    def _entry_statement(self, bindings: VariableBindings, action: Node) -> str:
        config = action.config
        args = [pine_string(bindings.primary(action.id)), "strategy.long"]

        quantity = parse_quantity(config.get("quantity")) if config.get("quantity") not in (None, "") else None
        if quantity is not None:
            amount, is_percent = quantity
            if is_percent:
                args.append(f"qty=strategy.equity * {format_number(amount / 100)} / close")
            else:
                args.append(f"qty={format_number(amount)}")

        order_type = config.get("orderType") or OrderType.MARKET.value
        if order_type in (OrderType.LIMIT.value, OrderType.STOP.value):
            price = coerce_number(config.get("price"))
            args.append(f"{order_type}={format_number(price) if price is not None else 'close'}")

        return f"strategy.entry({', '.join(args)})"

    def _risk_lines(self, view: _GraphView, bindings: VariableBindings) -> List[str]:
        risks = view.ordered(NodeKind.RISK)
        if not risks:
            return []

        lines = ["// Risk Management"]
        for node in risks:
            stop_loss = coerce_number(node.config.get("stopLoss"))
            take_profit = coerce_number(node.config.get("takeProfit"))
            if stop_loss is None and take_profit is None:
                continue

            args = [pine_string(bindings.primary(node.id))]
            described: List[str] = []
            if stop_loss is not None:
                args.append(f"stop=strategy.position_avg_price * (1 - {format_float(stop_loss / 100)})")
                described.append(f"stop loss {format_number(stop_loss)}%")
            if take_profit is not None:
                args.append(f"limit=strategy.position_avg_price * (1 + {format_float(take_profit / 100)})")
                described.append(f"take profit {format_number(take_profit)}%")

            lines.append(f"// {comment_text(node.label or 'Risk')}: {', '.join(described)}")
            lines.append("if strategy.position_size > 0")
            lines.append(f"    strategy.exit({', '.join(args)})")
        lines.append("")
        return lines

    # ------------------------------------------------------------------ #
    #  Section 5: plots
    # ------------------------------------------------------------------ #

    def _plots_section(self, view: _GraphView, bindings: VariableBindings) -> List[str]:
        lines = self._banner("Plots and Visual Elements")
        plotted_lines: Set[str] = set()
        emitted = False

        for node in view.ordered(NodeKind.INDICATOR):
            signature = self._registry.lookup_indicator(node.indicator_id)
            names = bindings.get(node.id)
            if signature is None or not names:
                continue
            lines.extend(self._indicator_plots(signature, node, names))
            emitted = True
            if signature.name not in plotted_lines:
                plotted_lines.add(signature.name)
                for ref in signature.reference_lines:
                    lines.append(
                        f"hline({format_number(ref.value)}, {pine_string(ref.title)}, "
                        f"color={ref.color}, linestyle=hline.style_dashed)"
                    )

        if not emitted:
            lines.append("// No indicators to plot")

        if view.ordered(NodeKind.CONDITION) and self._settings.EMIT_MARKERS:
            lines.append("")
            lines.append("// Entry/Exit Markers")
            lines.append(
                f'plotshape({LONG_CONDITION_VAR}, title="Long Entry", location=location.belowbar, '
                f'color=color.green, style=shape.labelup, text="BUY")'
            )
            lines.append(
                f'plotshape({EXIT_CONDITION_VAR}, title="Exit", location=location.abovebar, '
                f'color=color.red, style=shape.labeldown, text="SELL")'
            )
        return lines

    @staticmethod
    def _indicator_plots(signature: FunctionSignature, node: Node, names: Sequence[str]) -> List[str]:
        label = node.label or signature.title
        if not signature.is_tuple:
            return [f"plot({names[0]}, title={pine_string(label)}, color={signature.color_for(0)})"]

        lines: List[str] = []
        for index, (suffix, name) in enumerate(zip(signature.outputs, names)):
            title = pine_string(f"{label} {suffix.capitalize()}")
            style = ", style=plot.style_histogram" if suffix in signature.histogram_outputs else ""
            lines.append(f"plot({name}, title={title}, color={signature.color_for(index)}{style})")
        return lines

    @staticmethod
    def _footer() -> List[str]:
        return [
            "",
            BANNER,
            "// End of Strategy",
            BANNER,
        ]
