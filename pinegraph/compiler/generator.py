"""
PURPOSE: Orchestrates one strategy-graph compilation.

Validate -> (fallback on fatal errors) -> resolve order -> bind variables ->
emit -> structural sanity pass -> GenerationResult. Every call builds fresh
per-call state (validation report, binder, graph view), so one compiler
instance can be reused and shared: it holds only the immutable registry and
settings.

No exception escapes compile(): anything unexpected is logged and turned into
an error plus the fallback script.

CALLED BY:
    - builder UI / export actions through compile_strategy() and compile_canvas()
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from pinegraph.compiler.binder import VariableBinder
from pinegraph.compiler.emitter import PineEmitter
from pinegraph.compiler.registry import FunctionRegistry
from pinegraph.compiler.resolver import DependencyResolver
from pinegraph.compiler.validator import GraphValidator
from pinegraph.config.constants import NodeKind
from pinegraph.config.settings import Settings, settings as default_settings
from pinegraph.errors import GraphInputError
from pinegraph.schemas.graph import Edge, Node, parse_canvas
from pinegraph.schemas.result import GenerationMetadata, GenerationResult, ValidationReport
from pinegraph.utils.decorators import timed
from pinegraph.utils.logger import get_logger, setup_logging
from pinegraph.utils.pine import strip_strings_and_comments

logger = get_logger(__name__)

_CLOSERS = {")": "(", "]": "["}


def check_structure(code: str) -> List[str]:
    """
    PURPOSE: Final sanity pass over emitted code.

    Checks the mandatory header tokens and that parentheses and brackets
    outside string literals and comments balance.

    Args:
        code: Generated Pine Script.

    Returns:
        List[str]: Problems found; empty when the code looks well formed.
    """
    errors: List[str] = []
    if "//@version=" not in code:
        errors.append("Missing Pine Script version declaration")
    if "strategy(" not in code:
        errors.append("Missing strategy declaration")

    stack: List[str] = []
    balanced = True
    for char in strip_strings_and_comments(code):
        if char in "([":
            stack.append(char)
        elif char in _CLOSERS:
            if not stack or stack.pop() != _CLOSERS[char]:
                balanced = False
                break
    if not balanced or stack:
        errors.append("Unmatched parentheses in generated code")
    return errors


class StrategyCompiler:
    """
    PURPOSE: Compiles strategy graphs into Pine Script.

    Owns one immutable FunctionRegistry (built once, or shared by the caller)
    and one Settings instance.

    CALLED BY: compile_strategy(), compile_canvas(), validate_strategy()
    """

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._registry = registry or FunctionRegistry.default()
        self._settings = settings or default_settings
        self._validator = GraphValidator(self._registry)
        self._resolver = DependencyResolver()
        self._emitter = PineEmitter(self._registry, self._settings)

    @property
    def registry(self) -> FunctionRegistry:
        return self._registry

    @property
    def emitter(self) -> PineEmitter:
        return self._emitter

    def validate(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationReport:
        """Run validation only."""
        return self._validator.validate(list(nodes), list(edges))

    @timed()
    def compile(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> GenerationResult:
        """
        PURPOSE: Compile a strategy graph.

        Args:
            nodes: Graph nodes in input order. Not modified.
            edges: Graph edges in input order. Not modified.

        Returns:
            GenerationResult: Always returned, never raised. ``code`` is the
                strategy when ``success`` is True and the fallback script
                otherwise.
        """
        generated_at = datetime.now(timezone.utc).isoformat()
        node_list = list(nodes or [])
        edge_list = list(edges or [])
        try:
            return self._compile(node_list, edge_list, generated_at)
        except Exception as exc:
            logger.error(
                "compile_failed",
                error=str(exc),
                exception_type=type(exc).__name__,
            )
            return self.fallback_result(
                [f"Code generation failed: {exc}"],
                nodes=node_list,
                edges=edge_list,
                generated_at=generated_at,
            )

    def fallback_result(
        self,
        errors: Sequence[str],
        warnings: Sequence[str] = (),
        nodes: Sequence[Any] = (),
        edges: Sequence[Any] = (),
        generated_at: Optional[str] = None,
    ) -> GenerationResult:
        """
        PURPOSE: Package a failed compilation with the fallback script.

        Args:
            errors: Fatal errors to report (at least one).
            warnings: Advisory messages collected before failing.
            nodes: Input nodes, used for metadata counts.
            edges: Input edges, used for metadata counts.
            generated_at: Timestamp; defaults to now.

        Returns:
            GenerationResult: success=False with the fallback code.
        """
        code = self._emitter.emit_fallback(errors)
        return GenerationResult(
            success=False,
            code=code,
            errors=list(errors),
            warnings=list(warnings),
            metadata=self._metadata(nodes, edges, code, generated_at, variable_count=0),
        )

    def _compile(self, nodes: List[Node], edges: List[Edge], generated_at: str) -> GenerationResult:
        report = self._validator.validate(nodes, edges)
        if report.errors:
            logger.info(
                "compile_rejected",
                nodes=len(nodes),
                edges=len(edges),
                errors=len(report.errors),
                warnings=len(report.warnings),
            )
            return self.fallback_result(report.errors, report.warnings, nodes, edges, generated_at)

        order = self._resolver.resolve(nodes, edges)
        bindings = VariableBinder(self._registry).bind_graph(nodes)
        code = self._emitter.emit(nodes, edges, order, bindings)

        structure_errors = check_structure(code)
        if structure_errors:
            logger.error("compile_structure_invalid", errors=structure_errors)
            return self.fallback_result(structure_errors, report.warnings, nodes, edges, generated_at)

        metadata = self._metadata(nodes, edges, code, generated_at, variable_count=len(bindings))
        logger.info(
            "compile_finished",
            nodes=metadata.node_count,
            edges=metadata.edge_count,
            warnings=len(report.warnings),
            code_lines=metadata.code_lines,
        )
        return GenerationResult(
            success=True,
            code=code,
            errors=[],
            warnings=report.warnings,
            metadata=metadata,
        )

    @staticmethod
    def _metadata(
        nodes: Sequence[Any],
        edges: Sequence[Any],
        code: str,
        generated_at: Optional[str],
        variable_count: int,
    ) -> GenerationMetadata:
        def count(kind: NodeKind) -> int:
            return sum(1 for node in nodes if getattr(node, "kind", None) == kind)

        return GenerationMetadata(
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            node_count=len(nodes),
            edge_count=len(edges),
            indicator_count=count(NodeKind.INDICATOR),
            condition_count=count(NodeKind.CONDITION),
            action_count=count(NodeKind.ACTION),
            variable_count=variable_count,
            code_lines=len(code.splitlines()),
        )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    PURPOSE: Apply the configured LOG_LEVEL to structlog.

    Call once at application startup, before the first compile.

    Args:
        settings: Settings to read LOG_LEVEL from; the module singleton when omitted.
    """
    level = (settings or default_settings).LOG_LEVEL
    setup_logging(level)
    logger.debug("logging_configured", log_level=level)


def compile_strategy(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    settings: Optional[Settings] = None,
) -> GenerationResult:
    """Compile a graph with a fresh compiler."""
    return StrategyCompiler(settings=settings).compile(nodes, edges)


def compile_canvas(
    raw_nodes: Sequence[Mapping[str, Any]],
    raw_edges: Sequence[Mapping[str, Any]],
    compiler: Optional[StrategyCompiler] = None,
) -> GenerationResult:
    """
    PURPOSE: Compile the builder's canvas JSON records directly.

    Malformed records are reported as errors with the fallback script rather
    than raised.

    Args:
        raw_nodes: Canvas node records ``{id, type, data: {label, config}}``.
        raw_edges: Canvas edge records ``{id, source, target}``.
        compiler: Compiler to use; a default one is built when omitted.

    Returns:
        GenerationResult: See StrategyCompiler.compile().
    """
    compiler = compiler or StrategyCompiler()
    try:
        nodes, edges = parse_canvas(raw_nodes, raw_edges)
    except GraphInputError as exc:
        logger.info("canvas_rejected", problems=len(exc.problems))
        return compiler.fallback_result(exc.problems, nodes=list(raw_nodes or []), edges=list(raw_edges or []))
    return compiler.compile(nodes, edges)


def validate_strategy(nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationReport:
    """Validate a graph without generating code."""
    return StrategyCompiler().validate(nodes, edges)
