"""
Polytrope Solver Test Suite.

Test Files:
- test_spectral_grid.py: SpectralGrid operators and bounds handling
- test_symbolic_field.py: expression construction and evaluation
- test_jacobian.py: exact Jacobian blocks
- test_nonlinear_system.py: block assembly, boundary rows, solve
- test_newton_driver.py: relaxation policy and termination
- test_polytrope.py: end-to-end rotating polytrope runs
- test_parameters.py: defaults and parameter validation
- test_reporting.py: text reports

Usage:
    # Run all tests
    pytest tests/ -v

    # Run only unit tests (fast)
    pytest tests/ -m unit -v

    # Run only integration tests
    pytest tests/ -m integration -v
"""
