"""
Pytest configuration and shared fixtures.

Provides a test application, a fresh database per test, a CLI runner
and a few asset factories that all test modules can use.  Uses the
``testing`` configuration, which points at an in-memory SQLite
database unless TEST_DATABASE_URL is set.
"""

from decimal import Decimal

import pytest

from assetlife import create_app
from assetlife.extensions import db as _db
from assetlife.services import asset_service


@pytest.fixture(scope="session")
def app():
    """
    Create a Flask application configured for testing.

    The app is created once per test session with an application
    context held open for the whole session.
    """
    app = create_app("testing")

    with app.app_context():
        yield app


@pytest.fixture(scope="session")
def database(app):  # pylint: disable=redefined-outer-name
    """Provide the SQLAlchemy database instance."""
    yield _db


@pytest.fixture(scope="function")
def db_session(database):  # pylint: disable=redefined-outer-name
    """
    Provide a clean database for each test function.

    The services commit through ``record_store.transaction()``, so a
    rollback cannot undo their writes; instead every table is created
    before the test and dropped after it.
    """
    database.create_all()

    yield database.session

    database.session.remove()
    database.drop_all()


@pytest.fixture(scope="function")
def runner(app):  # pylint: disable=redefined-outer-name
    """
    Provide a Flask CLI runner for invoking custom commands.

    Usage in tests::

        def test_mark_overdue(runner, db_session):
            result = runner.invoke(args=["mark-overdue"])
            assert result.exit_code == 0
    """
    return app.test_cli_runner()


@pytest.fixture
def make_asset(db_session):  # pylint: disable=unused-argument
    """
    Factory for registered assets with sensible defaults.

    Usage::

        asset = make_asset(cost_basis="12000000", useful_life_months=12)
    """
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "asset_code": f"TEST-{counter['n']:04d}",
            "asset_name": f"Test Asset {counter['n']}",
            "asset_type": "equipment",
            "cost_basis": Decimal("12000.00"),
            "depreciation_method": "straight_line",
            "useful_life_months": 12,
        }
        fields.update(overrides)
        return asset_service.register_asset(**fields)

    return _make
