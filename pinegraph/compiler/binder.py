"""
PURPOSE: Assigns collision-free Pine identifiers to node outputs and inputs.

Each node gets one identifier per output: a single name for ordinary nodes,
``<base>_<suffix>`` for every named output of a tuple-output indicator (the
registry's outputs table decides how many). Indicator parameters get input
variables named ``<indicatorId>_<paramName>``.

Identifiers are unique within one binder. Collisions are resolved with the
node id's trailing fragment and, if that is not enough, a counter. Pine
keywords, built-ins and the names the emitter defines itself are never
handed out.

CALLED BY:
    - compiler/generator.py (one fresh binder per compile)
"""

import itertools
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from pinegraph.compiler.registry import FunctionRegistry
from pinegraph.config.constants import PINE_RESERVED_NAMES, NodeKind
from pinegraph.schemas.graph import Node

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_ALNUM_RUN = re.compile(r"[a-z0-9]+")
_MAX_FRAGMENT = 8

IDENTIFIER_PATTERN = re.compile(r"^_?[a-z][a-z0-9_]*$")


def sanitize_identifier(text: str, fallback: str = "node") -> str:
    """
    PURPOSE: Turn a display label into a Pine identifier.

    Lower-cases, collapses every run of characters outside [a-z0-9] into one
    underscore and strips leading/trailing underscores. A result that starts
    with a digit gets the "_n" prefix; an empty result uses the fallback.

    Args:
        text: Display label.
        fallback: Used when nothing identifier-like survives.

    Returns:
        str: Identifier matching ^_?[a-z][a-z0-9_]*$.
    """
    name = _NON_ALNUM.sub("_", str(text).lower()).strip("_")
    if not name:
        name = _NON_ALNUM.sub("_", fallback.lower()).strip("_") or "node"
    if name[0].isdigit():
        name = f"_n{name}"
    return name


def id_fragment(node_id: str) -> str:
    """Trailing alphanumeric fragment of a node id, e.g. "node-17" -> "17"."""
    runs = _ALNUM_RUN.findall(str(node_id).lower())
    return runs[-1][-_MAX_FRAGMENT:] if runs else ""


@dataclass
class VariableBindings:
    """
    PURPOSE: Result of binding one graph.

    Attributes:
        outputs: node id -> identifiers, one per output.
        suffixes: node id -> output suffixes for tuple-output nodes.
        inputs: (node id, parameter name) -> input variable name.
    """

    outputs: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    suffixes: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    inputs: Dict[Tuple[str, str], str] = field(default_factory=dict)

    def get(self, node_id: str) -> Tuple[str, ...]:
        return self.outputs.get(node_id, ())

    def primary(self, node_id: str) -> Optional[str]:
        """First output identifier of a node, or None if unbound."""
        names = self.outputs.get(node_id)
        return names[0] if names else None

    def output(self, node_id: str, suffix: str) -> Optional[str]:
        """Identifier of a named output of a tuple-output node."""
        suffixes = self.suffixes.get(node_id, ())
        if suffix in suffixes:
            return self.outputs[node_id][suffixes.index(suffix)]
        return None

    def input_name(self, node_id: str, parameter: str) -> Optional[str]:
        return self.inputs.get((node_id, parameter))

    def identifiers(self) -> Iterator[str]:
        """Every node output identifier, in binding order."""
        for names in self.outputs.values():
            yield from names

    def __len__(self) -> int:
        return len(self.outputs)


class VariableBinder:
    """
    PURPOSE: Allocates identifiers for one compilation.

    Holds the set of names already handed out, so a binder must not be
    reused across compilations.

    CALLED BY: compiler/generator.py
    """

    def __init__(self, registry: FunctionRegistry) -> None:
        self._registry = registry
        self._taken: Set[str] = set(PINE_RESERVED_NAMES) | set(registry.helper_names())
        self._bindings = VariableBindings()

    @property
    def bindings(self) -> VariableBindings:
        return self._bindings

    def bind(self, node: Node) -> Union[str, Tuple[str, ...]]:
        """
        PURPOSE: Bind the outputs of one node.

        Args:
            node: Node to bind. Binding the same node twice returns the
                existing identifiers.

        Returns:
            Union[str, Tuple[str, ...]]: The identifier, or one identifier per
                named output for tuple-output indicators.
        """
        if node.id in self._bindings.outputs:
            return self._unwrap(node.id)

        suffixes: Tuple[str, ...] = ()
        if node.kind == NodeKind.INDICATOR:
            suffixes = self._registry.outputs(node.indicator_id)

        base = sanitize_identifier(node.label, fallback=node.kind.value)
        names = self._allocate(base, node.id, suffixes)
        if suffixes:
            self._bindings.outputs[node.id] = tuple(names[1:])
            self._bindings.suffixes[node.id] = suffixes
        else:
            self._bindings.outputs[node.id] = (names[0],)
        return self._unwrap(node.id)

    def bind_inputs(self, node: Node) -> Dict[str, str]:
        """
        PURPOSE: Bind input variables for an indicator's declared parameters.

        Args:
            node: Indicator node.

        Returns:
            Dict[str, str]: parameter name -> input variable name. Empty for
                non-indicators and unknown indicators.
        """
        signature = self._registry.lookup_indicator(node.indicator_id)
        if node.kind != NodeKind.INDICATOR or signature is None:
            return {}

        bound: Dict[str, str] = {}
        for spec in signature.parameters:
            if not spec.is_input:
                continue
            key = (node.id, spec.name)
            if key not in self._bindings.inputs:
                base = f"{signature.name}_{spec.name}"
                self._bindings.inputs[key] = self._allocate(base, node.id)[0]
            bound[spec.name] = self._bindings.inputs[key]
        return bound

    def bind_graph(self, nodes: Sequence[Node]) -> VariableBindings:
        """
        PURPOSE: Bind every node of a graph in the given order.

        Input variables are bound first so they keep their plain
        ``<indicatorId>_<paramName>`` names whenever possible.

        Args:
            nodes: Nodes in a deterministic order.

        Returns:
            VariableBindings: The completed bindings.
        """
        for node in nodes:
            self.bind_inputs(node)
        for node in nodes:
            self.bind(node)
        return self._bindings

    def _unwrap(self, node_id: str) -> Union[str, Tuple[str, ...]]:
        names = self._bindings.outputs[node_id]
        return names if node_id in self._bindings.suffixes else names[0]

    def _allocate(self, base: str, node_id: str, suffixes: Tuple[str, ...] = ()) -> List[str]:
        """Reserve base (plus base_<suffix> names) under the first free candidate."""
        for candidate in self._candidates(base, node_id):
            names = [candidate] + [f"{candidate}_{suffix}" for suffix in suffixes]
            if not any(name in self._taken for name in names):
                self._taken.update(names)
                return names
        raise AssertionError("unreachable: candidate generator is infinite")

    @staticmethod
    def _candidates(base: str, node_id: str) -> Iterator[str]:
        yield base
        fragment = id_fragment(node_id)
        stem = f"{base}_{fragment}" if fragment else base
        if fragment:
            yield stem
        for counter in itertools.count(2):
            yield f"{stem}_{counter}"
