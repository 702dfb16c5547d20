"""
PURPOSE: Structural and semantic validation of a strategy graph.

Produces fatal errors and advisory warnings before any code is emitted. The
checks run in a fixed order (required components, per-node config, edge
integrity, cycles, data-flow hygiene) and never raise: every problem comes
back as a message in the ValidationReport.

CALLED BY:
    - compiler/generator.py (first stage of every compile)
"""

from typing import Any, Dict, List, Mapping, Sequence, Set, Tuple

from pinegraph.compiler.registry import FunctionRegistry
from pinegraph.config.constants import (
    ActionRole,
    ConditionOperator,
    MathOperation,
    NodeKind,
    OrderType,
)
from pinegraph.schemas.graph import Edge, Node
from pinegraph.schemas.result import ValidationReport
from pinegraph.utils.logger import get_logger
from pinegraph.utils.validators import (
    coerce_number,
    parse_quantity,
    validate_percentage,
    validate_time_of_day,
)

logger = get_logger(__name__)

MISSING_DATA_SOURCE = "Strategy must have at least one data source"
NO_ACTIONS = "Strategy has no trading actions defined"
CIRCULAR_DEPENDENCY = "Circular dependency detected in strategy"

_VALID_OPERATORS = tuple(op.value for op in ConditionOperator)
_VALID_ORDER_TYPES = tuple(t.value for t in OrderType)
_VALID_ROLES = tuple(r.value for r in ActionRole)
_VALID_MATH = tuple(op.value for op in MathOperation)

Messages = Tuple[List[str], List[str]]


def build_dependency_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> Dict[str, List[str]]:
    """
    PURPOSE: Adjacency of "target depends on source", keyed in node order.

    Edges whose endpoints are not in the graph are skipped; the validator
    reports them separately.

    Args:
        nodes: Graph nodes in input order.
        edges: Graph edges in input order.

    Returns:
        Dict[str, List[str]]: node id -> ids of the nodes it consumes, in edge order.
    """
    graph: Dict[str, List[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        if edge.source in graph and edge.target in graph:
            graph[edge.target].append(edge.source)
    return graph


def find_cycle(graph: Mapping[str, Sequence[str]]) -> bool:
    """
    PURPOSE: Detect whether the dependency graph contains a cycle.

    Iterative depth-first search with an explicit stack and an on-stack set;
    a node reached again while it is still on the stack closes a cycle. The
    search stops at the first cycle.

    Args:
        graph: Adjacency from build_dependency_graph().

    Returns:
        bool: True if a cycle exists.
    """
    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for root in graph:
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        stack: List[Tuple[str, int]] = [(root, 0)]

        while stack:
            node_id, next_index = stack[-1]
            dependencies = graph.get(node_id, ())
            if next_index < len(dependencies):
                stack[-1] = (node_id, next_index + 1)
                dep = dependencies[next_index]
                if dep in on_stack:
                    return True
                if dep not in visited:
                    visited.add(dep)
                    on_stack.add(dep)
                    stack.append((dep, 0))
            else:
                stack.pop()
                on_stack.discard(node_id)
    return False


class GraphValidator:
    """
    PURPOSE: Validates a strategy graph against the function registry.

    Holds no per-call state; validate() builds fresh error and warning lists
    on every call.

    CALLED BY: compiler/generator.py
    """

    def __init__(self, registry: FunctionRegistry) -> None:
        self._registry = registry

    def validate(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationReport:
        """
        PURPOSE: Run every check and collect the results.

        Args:
            nodes: Graph nodes in input order.
            edges: Graph edges in input order.

        Returns:
            ValidationReport: Fatal errors and advisory warnings.
        """
        errors: List[str] = []
        warnings: List[str] = []

        for check in (
            self._check_required_components,
            self._check_node_configs,
            self._check_edges,
            self._check_cycles,
            self._check_data_flow,
        ):
            check_errors, check_warnings = check(nodes, edges)
            errors.extend(check_errors)
            warnings.extend(check_warnings)

        logger.debug(
            "graph_validated",
            nodes=len(nodes),
            edges=len(edges),
            errors=len(errors),
            warnings=len(warnings),
        )
        return ValidationReport(errors=errors, warnings=warnings)

    # ------------------------------------------------------------------ #
    #  1. Required components
    # ------------------------------------------------------------------ #

    def _check_required_components(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []
        if not any(node.kind == NodeKind.DATA_SOURCE for node in nodes):
            errors.append(MISSING_DATA_SOURCE)
        if not any(node.kind == NodeKind.ACTION for node in nodes):
            warnings.append(NO_ACTIONS)
        return errors, warnings

    # ------------------------------------------------------------------ #
    #  2. Per-node configuration
    # ------------------------------------------------------------------ #

    def _check_node_configs(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []
        handlers = {
            NodeKind.INDICATOR: self._check_indicator,
            NodeKind.CONDITION: self._check_condition,
            NodeKind.ACTION: self._check_action,
            NodeKind.RISK: self._check_risk,
            NodeKind.TIMING: self._check_timing,
            NodeKind.MATH: self._check_math,
        }
        for node in nodes:
            handler = handlers.get(node.kind)
            if handler is None:
                continue
            node_errors, node_warnings = handler(node)
            errors.extend(node_errors)
            warnings.extend(node_warnings)
        return errors, warnings

    def _check_indicator(self, node: Node) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []

        indicator_id = node.indicator_id
        if not indicator_id:
            errors.append(f'Indicator node "{node.label}" missing indicator ID')
            return errors, warnings

        signature = self._registry.lookup_indicator(indicator_id)
        if signature is None:
            errors.append(f"Unknown indicator: {indicator_id}")
            return errors, warnings

        params = node.parameters
        for spec in signature.parameters:
            if spec.name not in params:
                if spec.required:
                    errors.append(f'Missing required parameter "{spec.name}" for {indicator_id}')
                continue
            errors.extend(spec.check(params[spec.name], f"{indicator_id}.{spec.name}"))

        for name in params:
            if signature.parameter(name) is None:
                warnings.append(
                    f'Indicator node "{node.label}" has unknown parameter "{name}" (ignored)'
                )

        errors.extend(signature.run_validator(params))
        return errors, warnings

    def _check_condition(self, node: Node) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []
        config = node.config

        operator = config.get("operator")
        if not operator:
            errors.append(f'Condition node "{node.label}" missing operator')
        elif operator not in _VALID_OPERATORS:
            errors.append(f'Invalid operator "{operator}" in condition node "{node.label}"')

        threshold = config.get("threshold")
        if threshold is None:
            warnings.append(f'Condition node "{node.label}" has no threshold value')
        elif coerce_number(threshold) is None:
            errors.append(f'Threshold of condition node "{node.label}" must be a number')
        return errors, warnings

    def _check_action(self, node: Node) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []
        config = node.config

        order_type = config.get("orderType")
        if not order_type:
            warnings.append(f'Action node "{node.label}" using default order type')
        elif order_type not in _VALID_ORDER_TYPES:
            errors.append(f'Invalid order type "{order_type}" in action node "{node.label}"')

        quantity = config.get("quantity")
        if quantity is None or quantity == "":
            warnings.append(f'Action node "{node.label}" has no quantity specified')
        elif parse_quantity(quantity) is None:
            errors.append(f'Invalid quantity "{quantity}" in action node "{node.label}"')

        role = config.get("role")
        if role is not None and role not in _VALID_ROLES:
            errors.append(f'Invalid role "{role}" in action node "{node.label}"')
        return errors, warnings

    def _check_risk(self, node: Node) -> Messages:
        errors: List[str] = []
        warnings: List[str] = []
        levels = [key for key in ("stopLoss", "takeProfit") if node.config.get(key) is not None]
        if not levels:
            warnings.append(f'Risk node "{node.label}" defines neither stop loss nor take profit')
        for key in levels:
            if not validate_percentage(node.config[key]):
                errors.append(f'{key} of risk node "{node.label}" must be a positive percentage')
        return errors, warnings

    def _check_timing(self, node: Node) -> Messages:
        errors: List[str] = []
        for key in ("startTime", "endTime"):
            if not validate_time_of_day(node.config.get(key)):
                errors.append(f'{key} of timing node "{node.label}" must be HH:MM')
        return errors, []

    def _check_math(self, node: Node) -> Messages:
        errors: List[str] = []
        operation = node.config.get("operation")
        if operation not in _VALID_MATH:
            errors.append(f'Invalid operation "{operation}" in math node "{node.label}"')
            return errors, []

        if operation != MathOperation.ABS.value:
            value = node.config.get("value", 0)
            number = coerce_number(value)
            if number is None:
                errors.append(f'Value of math node "{node.label}" must be a number')
            elif operation == MathOperation.DIVIDE.value and number == 0:
                errors.append(f'Math node "{node.label}" divides by zero')
        return errors, []

    # ------------------------------------------------------------------ #
    #  3. Edge integrity
    # ------------------------------------------------------------------ #

    def _check_edges(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Messages:
        errors: List[str] = []
        node_ids: Set[str] = set()
        for node in nodes:
            if node.id in node_ids:
                errors.append(f"Duplicate node id: {node.id}")
            node_ids.add(node.id)

        for edge in edges:
            if edge.source not in node_ids:
                errors.append(f"Edge references non-existent source node: {edge.source}")
            if edge.target not in node_ids:
                errors.append(f"Edge references non-existent target node: {edge.target}")
        return errors, []

    # ------------------------------------------------------------------ #
    #  4. Cycles
    # ------------------------------------------------------------------ #

    def _check_cycles(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Messages:
        if find_cycle(build_dependency_graph(nodes, edges)):
            return [CIRCULAR_DEPENDENCY], []
        return [], []

    # ------------------------------------------------------------------ #
    #  5. Data-flow hygiene
    # ------------------------------------------------------------------ #

    def _check_data_flow(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Messages:
        warnings: List[str] = []
        sources = {edge.source for edge in edges}
        targets = {edge.target for edge in edges}
        kinds: Dict[str, Any] = {node.id: node.kind for node in nodes}

        for node in nodes:
            if node.kind == NodeKind.INDICATOR:
                if node.id not in sources and node.id not in targets:
                    warnings.append(f'Node "{node.label}" is not connected to any other nodes')
            elif node.kind == NodeKind.CONDITION:
                upstream = {
                    kinds.get(edge.source) for edge in edges if edge.target == node.id
                }
                if not upstream & {NodeKind.INDICATOR, NodeKind.MATH}:
                    warnings.append(
                        f'Condition node "{node.label}" has no connected indicator; it is always true'
                    )
        return [], warnings
