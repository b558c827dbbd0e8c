"""
Application factory for the asset lifecycle core.

The Flask application owns configuration, the database extension,
schema migrations and the maintenance CLI.  Presentation layers import
the service modules under ``assetlife.services`` and call them inside
an application context.

Usage::

    from assetlife import create_app
    app = create_app()           # Uses FLASK_ENV to pick config.
    app = create_app("testing")  # Explicit config for tests.
"""

import logging
import os

from flask import Flask

from .config import config_by_name
from .extensions import db, migrate


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: One of 'development', 'testing', or 'production'.
                     Defaults to the FLASK_ENV environment variable,
                     falling back to 'development'.

    Returns:
        A fully configured Flask application instance.
    """
    # Resolve the configuration class.
    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")
    config_class = config_by_name.get(config_name)
    if config_class is None:
        raise ValueError(
            f"Unknown config '{config_name}'. "
            f"Valid options: {list(config_by_name.keys())}"
        )

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Refuse to run production against a development or SQLite database.
    if config_name == "production":
        config_class.validate_production_settings(app.config)

    # -- Initialize extensions ---------------------------------------------
    _register_extensions(app)

    # -- Register custom CLI commands --------------------------------------
    _register_cli_commands(app)

    # -- Configure logging -------------------------------------------------
    _configure_logging(app)

    return app


def _register_extensions(app: Flask) -> None:
    """Bind all Flask extensions to the application instance."""
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so metadata is complete for create_all and Alembic.
    from . import models  # noqa: F401  pylint: disable=import-outside-toplevel


def _register_cli_commands(app: Flask) -> None:
    """Register custom Flask CLI commands (e.g., flask mark-overdue)."""
    from .cli import register_commands  # pylint: disable=import-outside-toplevel
    from .seed_dev_assets import (  # pylint: disable=import-outside-toplevel
        register_seed_commands,
    )

    register_commands(app)
    register_seed_commands(app)


def _configure_logging(app: Flask) -> None:
    """
    Set the root log level from ``LOG_LEVEL``.

    In debug mode SQLAlchemy engine logging is quieted because
    ``SQLALCHEMY_ECHO`` already prints statements.
    """
    log_level = app.config.get("LOG_LEVEL", "INFO")
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO))

    # Quiet down noisy libraries in development.
    if app.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
