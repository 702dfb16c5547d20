"""
PURPOSE: Exception types raised inside pinegraph.

Compilation itself never raises: the driver turns these into result errors.
They exist so that the intake helpers can report malformed input precisely.
"""

from typing import List, Optional


class PineGraphError(Exception):
    """Base class for pinegraph errors."""


class GraphInputError(PineGraphError):
    """
    PURPOSE: Raised when raw canvas records cannot be turned into nodes and edges.

    Attributes:
        problems: One human-readable message per malformed record.
    """

    def __init__(self, problems: List[str], message: Optional[str] = None) -> None:
        self.problems = list(problems)
        super().__init__(message or "; ".join(self.problems) or "Malformed strategy graph")
