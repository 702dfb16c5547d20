"""
Pydantic v2 schemas for the pinegraph compiler.

This module exports the graph input records and the result objects
returned to callers.
"""

from .graph import Edge, Node, parse_canvas
from .result import GenerationMetadata, GenerationResult, ValidationReport

__all__ = [
    # Graph schemas
    "Node",
    "Edge",
    "parse_canvas",
    # Result schemas
    "GenerationResult",
    "GenerationMetadata",
    "ValidationReport",
]
