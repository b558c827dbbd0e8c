"""
Application configuration classes.

Each class represents a deployment environment. The factory function
``create_app`` in ``assetlife/__init__.py`` selects the appropriate
config based on the FLASK_ENV environment variable.

The record store is a hosted PostgreSQL database in every deployed
environment; tests run against an in-memory SQLite database so they
need no server.
"""

import logging
import os

# Module-level logger for startup warnings emitted by config classes.
_logger = logging.getLogger(__name__)

# =========================================================================
# Sentinel for detecting an unset DATABASE_URL in production.
# =========================================================================
_DEFAULT_DATABASE_URL = "postgresql+psycopg2://localhost:5432/assetlife_dev"


class BaseConfig:
    """
    Shared configuration values inherited by all environments.

    Connection strings are loaded from environment variables so they
    never appear in source control.
    """

    # -- SQLAlchemy --------------------------------------------------------
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL", _DEFAULT_DATABASE_URL
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # Echo SQL statements to the log for debugging (override per env).
    SQLALCHEMY_ECHO: bool = False

    # -- Lifecycle policy --------------------------------------------------
    # Assets returned at or above this reusability percentage go straight
    # back to the pool; below it they are routed to maintenance.
    REUSABILITY_THRESHOLD: int = int(
        os.environ.get("REUSABILITY_THRESHOLD", "80")
    )

    # Quantum that periodic depreciation amounts are rounded to.
    DEPRECIATION_ROUNDING: str = os.environ.get("DEPRECIATION_ROUNDING", "0.01")

    # -- Logging -----------------------------------------------------------
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # =====================================================================
    # Production validation helpers
    # =====================================================================

    @classmethod
    def validate_production_settings(cls, app_config: dict) -> None:
        """
        Verify that the production configuration is usable.

        Called by ``create_app()`` when ``config_name == 'production'``.
        Raises ``RuntimeError`` for hard requirements and logs warnings
        for soft requirements.

        Args:
            app_config: The ``app.config`` dict after loading the
                        config class.

        Raises:
            RuntimeError: If the database URL is missing, still the
                          development default, or points at SQLite.
        """
        errors: list[str] = []

        # -- DATABASE_URL (hard fail) --------------------------------------
        db_uri = app_config.get("SQLALCHEMY_DATABASE_URI", "")
        if not db_uri or db_uri == _DEFAULT_DATABASE_URL:
            errors.append(
                "DATABASE_URL is not set. Point it at the hosted "
                "PostgreSQL instance before starting in production."
            )
        elif db_uri.startswith("sqlite"):
            errors.append(
                f"DATABASE_URL ({db_uri}) uses SQLite, which is only "
                "supported for tests and local experiments."
            )

        # -- Reusability threshold must be a percentage (hard fail) --------
        threshold = app_config.get("REUSABILITY_THRESHOLD")
        if threshold is None or not 0 <= int(threshold) <= 100:
            errors.append(
                f"REUSABILITY_THRESHOLD ({threshold}) must be between 0 and 100."
            )

        # -- Raise all hard failures at once -------------------------------
        if errors:
            combined = "\n  - ".join(errors)
            raise RuntimeError(f"Production configuration errors:\n  - {combined}")

        # -- LOG_LEVEL sanity check (soft warning) -------------------------
        if app_config.get("LOG_LEVEL", "").upper() == "DEBUG":
            _logger.warning(
                "LOG_LEVEL=DEBUG is not recommended in production; "
                "SQL statements and record contents may appear in logs. "
                "Consider INFO or WARNING."
            )


class DevelopmentConfig(BaseConfig):
    """Development environment: verbose logging, SQL echo enabled."""

    DEBUG: bool = True
    SQLALCHEMY_ECHO: bool = True
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    """
    Testing environment: in-memory SQLite unless TEST_DATABASE_URL is set.

    Tables are created and dropped per test by the fixtures in
    ``tests/conftest.py``.
    """

    TESTING: bool = True
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL", "sqlite:///:memory:"
    )
    LOG_LEVEL: str = "DEBUG"
    REUSABILITY_THRESHOLD: int = 80


class ProductionConfig(BaseConfig):
    """
    Production environment: strict settings, no debug output.

    The application factory calls ``validate_production_settings()`` at
    startup and will refuse to launch if critical values are missing.
    """

    DEBUG: bool = False
    SQLALCHEMY_ECHO: bool = False
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "WARNING")

    # Recycle pooled connections before the hosted service drops them.
    SQLALCHEMY_ENGINE_OPTIONS: dict = {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }


# Lookup dict used by the application factory.
config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}
