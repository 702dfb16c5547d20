"""
PURPOSE: Strategy-graph compiler package for pinegraph.

Turns a graph of strategy nodes (data sources, indicators, conditions,
actions, risk rules, timing filters, math) into Pine Script. The pipeline is
GraphValidator -> DependencyResolver -> VariableBinder -> PineEmitter, driven
by StrategyCompiler.
"""

from .binder import VariableBinder, VariableBindings, sanitize_identifier
from .emitter import PineEmitter
from .generator import (
    StrategyCompiler,
    compile_canvas,
    compile_strategy,
    configure_logging,
    validate_strategy,
)
from .registry import FunctionRegistry, FunctionSignature, ParameterSpec
from .resolver import DependencyResolver
from .validator import GraphValidator

__all__ = [
    "StrategyCompiler",
    "compile_strategy",
    "compile_canvas",
    "validate_strategy",
    "configure_logging",
    "FunctionRegistry",
    "FunctionSignature",
    "ParameterSpec",
    "GraphValidator",
    "DependencyResolver",
    "VariableBinder",
    "VariableBindings",
    "sanitize_identifier",
    "PineEmitter",
]
