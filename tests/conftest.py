"""
Pytest configuration for the polytrope solver test suite.
"""

import pytest
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from polytrope_solver.spatial.radial import SpectralGrid
from polytrope_solver.symbolic.field import SymbolicField


def pytest_configure(config):
    """Called after command line options have been parsed."""
    # Add markers for test organization
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


@pytest.fixture
def grid():
    """Small grid on [0, 1] for unit tests."""
    return SpectralGrid(16, 0.0, 1.0)


@pytest.fixture
def field(grid):
    """Symbolic field with a field unknown Phi and a scalar unknown Lambda."""
    S = SymbolicField(grid)
    S.regvar("Phi")
    S.regvar("Lambda")
    return S


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
