"""
pinegraph: compiles visual trading-strategy graphs into Pine Script.
"""

from pinegraph.compiler import (
    StrategyCompiler,
    compile_canvas,
    compile_strategy,
    configure_logging,
    validate_strategy,
)
from pinegraph.schemas import Edge, GenerationResult, Node

__version__ = "1.0.0"

__all__ = [
    "StrategyCompiler",
    "compile_strategy",
    "compile_canvas",
    "validate_strategy",
    "configure_logging",
    "Node",
    "Edge",
    "GenerationResult",
]
