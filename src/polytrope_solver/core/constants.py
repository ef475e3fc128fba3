"""
Default numerical constants for the polytrope solver.

Defaults for the Newton driver and the rotating polytrope model are loaded
from solver_defaults.json if available, otherwise the hard-coded values
below are used. Entries in the JSON file override the defaults key by key.
"""

import json
import warnings
from pathlib import Path
from typing import Dict, Any

# =============================================================================
# Load Solver Defaults from JSON
# =============================================================================

# Path to solver_defaults.json (same directory as this file)
_DEFAULTS_JSON_PATH = Path(__file__).parent / "solver_defaults.json"

# Default values (used if solver_defaults.json is missing or unreadable)
_DEFAULT_CONSTANTS: Dict[str, Any] = {
    "tol": 1e-12,  # Newton tolerance on the primary correction (inf-norm)
    "max_iter": 10000,  # Iteration cap
    "relax_threshold": 0.01,  # Full steps once the error drops below this
    "damped_relax": 0.2,  # Relaxation applied above the threshold
    "full_relax": 1.0,  # Relaxation applied at or below the threshold
    "polytropic_index": 1.5,
    "omega": 0.0,  # Dimensionless rotation rate
    "nr": 50,  # Radial collocation points
    "n_theta": 1,  # Angular points (radial-only grids)
    "r_inner": 0.0,
    "r_outer": 1.0,
}


def load_defaults_from_json(path: Path = _DEFAULTS_JSON_PATH) -> Dict[str, Any]:
    """
    Load solver defaults from a JSON file.
    
    If the file doesn't exist or is invalid, returns the built-in defaults.
    
    Args:
        path: JSON file to read. Defaults to the packaged solver_defaults.json.
    
    Returns:
        Dictionary with constant names as keys and values.
    """
    path = Path(path)
    if not path.exists():
        return _DEFAULT_CONSTANTS.copy()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        warnings.warn(f"Failed to load {path.name}: {e}. Using defaults.")
        return _DEFAULT_CONSTANTS.copy()
    if not isinstance(loaded, dict):
        warnings.warn(f"{path.name} does not contain a JSON object. Using defaults.")
        return _DEFAULT_CONSTANTS.copy()
    # Merge with defaults to ensure all keys exist
    result = _DEFAULT_CONSTANTS.copy()
    result.update(loaded)
    return result


def get_defaults_json_path() -> Path:
    """Return the path to the solver_defaults.json file."""
    return _DEFAULTS_JSON_PATH


SOLVER_DEFAULTS: Dict[str, Any] = load_defaults_from_json()

DEFAULT_TOL: float = float(SOLVER_DEFAULTS["tol"])
DEFAULT_MAX_ITER: int = int(SOLVER_DEFAULTS["max_iter"])
DEFAULT_RELAX_THRESHOLD: float = float(SOLVER_DEFAULTS["relax_threshold"])
DEFAULT_DAMPED_RELAX: float = float(SOLVER_DEFAULTS["damped_relax"])
DEFAULT_FULL_RELAX: float = float(SOLVER_DEFAULTS["full_relax"])
