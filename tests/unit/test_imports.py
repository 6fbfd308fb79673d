"""
Test basic imports and module structure.

These tests ensure all core modules can be imported without errors
and basic functionality is available.
"""

import pytest


@pytest.mark.unit
@pytest.mark.smoke
def test_database_import():
    """Test that database module imports successfully."""
    from data.database import CVRDatabase

    assert CVRDatabase is not None


@pytest.mark.unit
@pytest.mark.smoke
def test_ballot_loader_import():
    from data.ballot_loader import load_ballot_records

    assert load_ballot_records is not None


@pytest.mark.unit
@pytest.mark.smoke
def test_stv_import():
    """Test that STV module imports successfully."""
    from tabulation.stv import STVTabulator, run_stv

    assert STVTabulator is not None
    assert run_stv is not None


@pytest.mark.unit
@pytest.mark.smoke
def test_package_exports():
    import tabulation

    for name in tabulation.__all__:
        assert hasattr(tabulation, name), name


@pytest.mark.unit
@pytest.mark.smoke
def test_verification_import():
    """Test that verification module imports successfully."""
    from tabulation.verification import ResultsVerifier

    assert ResultsVerifier is not None


@pytest.mark.unit
@pytest.mark.smoke
def test_error_hierarchy():
    from tabulation.errors import (
        ConfigurationError,
        InvariantViolation,
        TabulationError,
    )

    assert issubclass(ConfigurationError, TabulationError)
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(InvariantViolation, TabulationError)
    assert issubclass(InvariantViolation, RuntimeError)


@pytest.mark.unit
@pytest.mark.smoke
def test_web_main_import():
    """Test that web application module imports successfully."""
    from web.main import app

    assert app is not None
    paths = {route.path for route in app.routes}
    assert "/api/stv-results" in paths
    assert "/api/stv-rounds/{round_number}" in paths
    assert "/api/verify-results" in paths
