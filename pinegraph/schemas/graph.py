"""
Strategy-graph Pydantic schemas consumed by the compiler.

Handles validation of the node and edge records supplied by the visual
builder, including conversion from the canvas JSON shape.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pinegraph.config.constants import NODE_KIND_ALIASES, NodeKind
from pinegraph.errors import GraphInputError


class Node(BaseModel):
    """
    One vertex of the strategy graph.

    Attributes:
        id: Unique node identifier within the graph
        kind: Node variant (data-source, indicator, condition, ...)
        label: Display label; also the basis of the node's variable name
        config: Kind-specific configuration (indicatorId/parameters,
            operator/threshold, orderType/quantity, stopLoss/takeProfit, ...)
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: NodeKind
    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the node id is not blank."""
        if not v or not v.strip():
            raise ValueError('node id must not be empty')
        return v

    @field_validator('kind', mode='before')
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept canvas aliases such as 'input' and any letter case."""
        if isinstance(v, str):
            key = v.strip().lower()
            return NODE_KIND_ALIASES.get(key, key)
        return v

    @field_validator('label', mode='before')
    @classmethod
    def normalize_label(cls, v: Any) -> str:
        """Treat a missing label as empty."""
        return "" if v is None else str(v)

    @field_validator('config', mode='before')
    @classmethod
    def normalize_config(cls, v: Any) -> Any:
        """Treat a missing config as empty."""
        return {} if v is None else v

    @property
    def indicator_id(self) -> Optional[str]:
        """Indicator id for indicator nodes, lower-cased."""
        value = self.config.get("indicatorId")
        if value is None:
            return None
        return str(value).strip().lower() or None

    @property
    def parameters(self) -> Dict[str, Any]:
        """Indicator parameters, or an empty dict when absent or malformed."""
        params = self.config.get("parameters")
        return dict(params) if isinstance(params, Mapping) else {}

    @classmethod
    def from_canvas(cls, raw: Mapping[str, Any]) -> "Node":
        """
        Build a node from the builder's canvas record.

        The canvas keeps the kind in ``type`` and label/config under ``data``;
        parameters sometimes sit beside the config instead of inside it.
        """
        data = raw.get("data") or {}
        config = dict(data.get("config") or {})
        if "parameters" not in config and isinstance(data.get("parameters"), Mapping):
            config["parameters"] = dict(data["parameters"])
        return cls(
            id=raw.get("id"),
            kind=raw.get("type") or data.get("type"),
            label=data.get("label", raw.get("label")),
            config=config,
        )


class Edge(BaseModel):
    """
    Directed dependency: ``target`` consumes ``source``'s output.

    Attributes:
        id: Edge identifier
        source: Id of the producing node
        target: Id of the consuming node
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str

    @classmethod
    def from_canvas(cls, raw: Mapping[str, Any]) -> "Edge":
        """Build an edge from a canvas record, inventing an id when missing."""
        source = raw.get("source")
        target = raw.get("target")
        edge_id = raw.get("id") or f"{source}->{target}"
        return cls(id=edge_id, source=source, target=target)


def parse_canvas(
    raw_nodes: Sequence[Mapping[str, Any]],
    raw_edges: Sequence[Mapping[str, Any]],
) -> Tuple[List[Node], List[Edge]]:
    """
    Convert canvas JSON records into nodes and edges, preserving order.

    Raises:
        GraphInputError: If any record is malformed. All problems are
            collected before raising.
    """
    problems: List[str] = []
    nodes: List[Node] = []
    edges: List[Edge] = []

    for index, raw in enumerate(raw_nodes or []):
        try:
            if not isinstance(raw, Mapping):
                raise TypeError("record is not an object")
            nodes.append(Node.from_canvas(raw))
        except (ValidationError, TypeError, ValueError, AttributeError) as exc:
            problems.append(f"Invalid node at position {index}: {_describe(exc)}")

    for index, raw in enumerate(raw_edges or []):
        try:
            if not isinstance(raw, Mapping):
                raise TypeError("record is not an object")
            edges.append(Edge.from_canvas(raw))
        except (ValidationError, TypeError, ValueError) as exc:
            problems.append(f"Invalid edge at position {index}: {_describe(exc)}")

    if problems:
        raise GraphInputError(problems)
    return nodes, edges


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
            for err in exc.errors()
        )
    return str(exc)
