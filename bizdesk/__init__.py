"""
bizdesk/__init__.py

Flask application factory for the Bizdesk ledger and stock reconciliation back end.

- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev and tests.
- JSON API only; every blueprint except auth requires a login session.
- Domain errors (BizdeskError) are turned into JSON responses here, once.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

import click
from flask import Flask, jsonify

from .errors import BizdeskError
from .extensions import csrf, db, login_manager, migrate
from .models import User

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"},
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "default"},
            },
            "loggers": {
                "bizdesk": {"level": level, "handlers": ["console"], "propagate": True},
            },
        }
    )


def create_app(config_object: str = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "message": "Login required."}), 401

    # ----------------------------------------------------------------------
    # Errors
    # ----------------------------------------------------------------------
    @app.errorhandler(BizdeskError)
    def handle_domain_error(exc: BizdeskError):
        if exc.http_status >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.documents import documents_bp
    from .blueprints.grvs import grvs_bp
    from .blueprints.ledger import ledger_bp
    from .blueprints.masterdata import masterdata_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(grvs_bp)
    app.register_blueprint(masterdata_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("create-user")
    @click.argument("username")
    @click.password_option()
    def create_user_command(username: str, password: str):
        """Create a login user."""
        if User.query.filter_by(username=username).first() is not None:
            raise click.ClickException(f"User {username} already exists.")

        user = User(username=username, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"User {username} created.")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Seed demo clients, suppliers and stock items."""
        from .seed import seed_demo_data

        seed_demo_data()
        click.echo("Demo data seeded.")

    @app.cli.command("statement")
    @click.argument("client_id", type=int)
    @click.option("--cutoff", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Last date included (YYYY-MM-DD).")
    def statement_command(client_id: int, cutoff):
        """Print a client statement up to the cutoff date (default today)."""
        from datetime import date

        from .services.statements import client_statement

        try:
            statement = client_statement(client_id, cutoff.date() if cutoff else date.today())
        except BizdeskError as exc:
            raise click.ClickException(exc.message) from exc

        for entry in statement.entries:
            row = entry.to_dict()
            click.echo(f"{row['date']}  {row['type']:<8} {row['reference']:<12} {row['amount']:>12} {row['balance']:>12}")
        click.echo(f"Closing balance: {statement.to_dict()['closing_balance']}")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        return jsonify({"app": app.config.get("APP_NAME", "Bizdesk"), "status": "ok"})

    return app
