"""
Rotating polytrope run.

Solves the rotating polytrope (n = 1.5, omega = 0.3) on 50 radial points,
prints the iteration history and a summary table, and checks the boundary
conditions of the converged potential.

All output is saved to a timestamped log file in the logs folder.
Exits with status 1 if the Newton iteration fails.
"""

import sys
from datetime import datetime
from pathlib import Path

from polytrope_solver.core.errors import ConvergenceFailure, SingularSystem
from polytrope_solver.core.parameters import NewtonParameters, PolytropeParameters
from polytrope_solver.models.polytrope import RotatingPolytropeSolver
from polytrope_solver.reporting.results_reporter import (
    format_iteration_table,
    format_polytrope_summary,
)

N_INDEX = 1.5  # Polytropic index
TOL = 1e-12  # Required tolerance
NR = 50  # Number of points
OMEGA = 0.3


class LogWriter:
    """Writes output to both console and log file."""
    def __init__(self, log_path):
        self.terminal = sys.stdout
        self.log = open(log_path, 'w', encoding='utf-8')

    def write(self, message):
        self.terminal.write(message)
        self.log.write(message)
        self.log.flush()

    def flush(self):
        self.terminal.flush()
        self.log.flush()

    def close(self):
        self.log.close()


def run() -> int:
    params = PolytropeParameters(
        polytropic_index=N_INDEX,
        omega=OMEGA,
        nr=NR,
        newton=NewtonParameters(tol=TOL),
    )
    solver = RotatingPolytropeSolver(params, verbose=True)

    try:
        result = solver.solve()
    except ConvergenceFailure as e:
        print(f"\nNo convergence: {e}")
        print(f"  iterations: {e.iterations}, last error: {e.error:.3e}")
        return 1
    except SingularSystem as e:
        print(f"\nSingular Newton step: {e}")
        return 1

    print("\n" + "=" * 60)
    print("ITERATIONS")
    print("=" * 60)
    print(format_iteration_table(result.info, every=10))

    print("\n" + "=" * 60)
    print(format_polytrope_summary(result, title="ROTATING POLYTROPE"))
    return 0


def main():
    log_dir = Path(__file__).parent.parent / "logs"
    log_dir.mkdir(exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"solve_polytrope_{timestamp}.log"

    writer = LogWriter(log_path)
    sys.stdout = writer
    try:
        status = run()
    finally:
        sys.stdout = writer.terminal
        writer.close()
    print(f"\nLog saved to {log_path}")
    return status


if __name__ == "__main__":
    sys.exit(main())
