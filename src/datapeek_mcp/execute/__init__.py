"""Read-only execution of saved or hand-written SELECT queries.

Main Components:
- enforce_select_only: sqlglot-based guard that admits a single query
- run_select: Executes a guarded query with a row cap
- register_execute_tools: FastMCP registration of ``execute_query``
"""

from .runner import enforce_select_only, run_select, strip_trailing_semicolon

__all__ = [
    "enforce_select_only",
    "run_select",
    "strip_trailing_semicolon",
]
