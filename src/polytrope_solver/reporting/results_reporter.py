"""
Text reports for Newton runs and converged polytropes.

Tables are rendered with tabulate in 'grid' format, the same layout the
run scripts print to the console and to their log files.
"""

from typing import List, Optional, Sequence

from tabulate import tabulate

from polytrope_solver.models.polytrope import PolytropeResult
from polytrope_solver.solver.newton import ConvergenceInfo


def format_iteration_table(info: ConvergenceInfo, every: int = 1) -> str:
    """
    Per-iteration error and relaxation factor.

    Args:
        info: Convergence information of a finished run.
        every: Only show every n-th iteration (the last one is always shown).

    Returns:
        Table as a string.
    """
    if every < 1:
        raise ValueError(f"every must be at least 1, got {every}")
    n = len(info.error_history)
    rows = []
    for i, error in enumerate(info.error_history):
        if i % every and i != n - 1:
            continue
        relax = info.relax_history[i] if i < len(info.relax_history) else float('nan')
        rows.append([i, f"{error:.3e}", f"{relax:.2f}"])
    return tabulate(rows, headers=["Iteration", "Error", "Relax"], tablefmt='grid')


def format_polytrope_summary(result: PolytropeResult, title: Optional[str] = None) -> str:
    """
    Summary table of a converged rotating polytrope.

    Reports the scalar unknowns, the end values of Phi, both boundary
    condition diagnostics, the surface relation and the bulk residual.
    """
    lines: List[str] = []
    if title:
        lines.append(title)
        lines.append("-" * len(title))

    params = result.parameters
    rows: List[Sequence] = []
    if params is not None:
        rows.extend([
            ["n (polytropic index)", f"{params.polytropic_index:g}"],
            ["omega", f"{params.omega:g}"],
            ["nr", params.nr],
        ])
    rows.extend([
        ["Lambda", f"{result.Lambda:.10f}"],
        ["Phi0", f"{result.Phi0:.10f}"],
        ["Phi(0)", f"{result.Phi[0]:.10f}"],
        ["Phi(1)", f"{result.Phi[-1]:.10f}"],
        ["dPhi/dr(0)", f"{result.dphi_inner:.3e}"],
        ["dPhi/dr(1) + Phi(1)", f"{result.robin_outer:.3e}"],
        ["Lambda (Phi(1) - Phi0)", f"{result.surface_relation:.12f}"],
        ["max interior residual", f"{result.max_residual:.3e}"],
        ["iterations", result.info.iterations],
        ["final error", f"{result.info.final_error:.3e}"],
    ])
    lines.append(tabulate(rows, headers=["Quantity", "Value"], tablefmt='grid'))
    return "\n".join(lines)
