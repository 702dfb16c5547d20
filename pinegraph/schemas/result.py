"""
Compilation result schemas returned by the strategy compiler.

These are the only objects surfaced to callers: the builder UI and export
actions read success/code/errors/warnings/metadata from them.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class GenerationMetadata(BaseModel):
    """
    Counts describing one compilation.

    Attributes:
        generated_at: ISO-8601 UTC timestamp of the compile call
        node_count: Number of nodes in the input graph
        edge_count: Number of edges in the input graph
        indicator_count: Number of indicator nodes
        condition_count: Number of condition nodes
        action_count: Number of action nodes
        variable_count: Number of nodes that received a variable binding
        code_lines: Line count of the returned code
    """

    model_config = ConfigDict(frozen=True)

    generated_at: str
    node_count: int = 0
    edge_count: int = 0
    indicator_count: int = 0
    condition_count: int = 0
    action_count: int = 0
    variable_count: int = 0
    code_lines: int = 0

    @field_validator(
        'node_count', 'edge_count', 'indicator_count', 'condition_count',
        'action_count', 'variable_count', 'code_lines',
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate counts are not negative."""
        if v < 0:
            raise ValueError('counts must not be negative')
        return v


class GenerationResult(BaseModel):
    """
    Outcome of compiling a strategy graph.

    ``code`` is always a well-formed script. When ``success`` is False it is
    the fallback script listing the errors as comments.

    Attributes:
        success: True when the real strategy was emitted
        code: Generated Pine Script
        errors: Fatal problems (non-empty implies success is False)
        warnings: Advisory problems; compilation still proceeded
        metadata: Counts and timestamp for this compilation
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    code: str
    errors: List[str] = []
    warnings: List[str] = []
    metadata: Optional[GenerationMetadata] = None


class ValidationReport(BaseModel):
    """
    Errors and warnings produced by the graph validator.

    Attributes:
        errors: Fatal problems
        warnings: Advisory problems
    """

    errors: List[str] = []
    warnings: List[str] = []

    @property
    def is_valid(self) -> bool:
        """True when there are no fatal errors."""
        return not self.errors
