"""
Reporting module for the polytrope solver.
"""

from polytrope_solver.reporting.results_reporter import (
    format_iteration_table,
    format_polytrope_summary,
)

__all__ = [
    "format_iteration_table",
    "format_polytrope_summary",
]
