"""
Tests for the custom Flask CLI commands.

Commands are invoked through ``app.test_cli_runner()`` inside the
session-wide application context, so they share the test database.
"""

from datetime import date

import pytest

from assetlife.services import (
    allocation_service,
    asset_service,
    depreciation_service,
)


class TestDbCheck:
    """flask db-check"""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, runner):
        self.runner = runner

    def test_reports_ready_database(self):
        result = self.runner.invoke(args=["db-check"])

        assert result.exit_code == 0, result.output
        assert "Connected successfully" in result.output
        assert "All checks passed" in result.output


class TestMarkOverdueCommand:
    """flask mark-overdue"""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, runner, make_asset):
        self.runner = runner
        self.allocation = allocation_service.allocate(
            make_asset().id,
            "E1001",
            "Job",
            allocation_date=date(2026, 1, 1),
            expected_return_date=date(2026, 1, 10),
        )

    def test_marks_past_due_allocations(self):
        result = self.runner.invoke(args=["mark-overdue", "--today", "2026-02-01"])

        assert result.exit_code == 0, result.output
        assert "Marked 1 allocation(s) overdue as of 2026-02-01." in result.output
        assert allocation_service.get_allocation(self.allocation.id).status == "overdue"

    def test_rerun_marks_nothing(self):
        self.runner.invoke(args=["mark-overdue", "--today", "2026-02-01"])
        result = self.runner.invoke(args=["mark-overdue", "--today", "2026-02-01"])

        assert "Marked 0 allocation(s)" in result.output


class TestRunDepreciationCommand:
    """flask run-depreciation"""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, runner, make_asset):
        self.runner = runner
        self.asset = make_asset(activation_date=date(2026, 1, 1))

    def test_posts_the_requested_period(self):
        result = self.runner.invoke(args=["run-depreciation", "--period", "2026-05"])

        assert result.exit_code == 0, result.output
        assert "Period: 2026-05-01" in result.output
        assert "Processed: 1" in result.output
        entries = depreciation_service.get_entries(self.asset.id)
        assert [e.period_date for e in entries] == [date(2026, 5, 1)]

    def test_reports_failed_assets(self, make_asset):
        broken = make_asset(activation_date=date(2026, 1, 1), useful_life_months=None)

        result = self.runner.invoke(args=["run-depreciation", "--period", "2026-05"])

        assert result.exit_code == 0, result.output
        assert "Failed: 1" in result.output
        assert f"asset {broken.id}:" in result.output


class TestSeedDevAssets:
    """flask seed-dev-assets"""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, runner):
        self.runner = runner

    def test_seeds_sample_register_once(self):
        first = self.runner.invoke(args=["seed-dev-assets"])
        second = self.runner.invoke(args=["seed-dev-assets"])

        assert first.exit_code == 0, first.output
        assert "Seeded 5 new asset(s)." in first.output
        assert second.exit_code == 0, second.output
        assert "Seeded 0 new asset(s)." in second.output
        assert len(asset_service.list_assets()) == 5
        assert asset_service.get_asset_by_code("EQ-0001").current_status == "active"
