import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from routes import health_bp, auth_bp, admin_bp, booking_bp, payments_bp, webhook_bp, audit_logs_bp

from models import db
from models.user import User, Role
from services.booking_gate import BookingRejected
from services.availability import InvalidSlotTime
from services.reaper import HoldDiscarder, purge_expired_holds
from services.selection import SelectionError
from utils.seed import seed_roles, seed_defaults
from utils.auth_context import load_current_user
from utils.logging_setup import configure_logging
from utils.roles import ADMIN
from security.csrf import enforce_csrf

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_logs_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Tables, roles and default court types (idempotent)
    with app.app_context():
        db.create_all()
        seed_roles()
        seed_defaults()

    app.extensions["hold_discarder"] = HoldDiscarder(app)

    @app.before_request
    def _load_user():
        load_current_user()

    app.before_request(enforce_csrf)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    logger.info("courtbook app created (venue timezone %s)", app.config.get("VENUE_TIMEZONE"))
    return app


def register_error_handlers(app):
    @app.errorhandler(BookingRejected)
    def _booking_rejected(exc):
        logger.info("Booking rejected: %s (%s)", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(InvalidSlotTime)
    def _invalid_slot(exc):
        return jsonify(error=str(exc), code="INVALID_TIME"), 400

    @app.errorhandler(SelectionError)
    def _selection_error(exc):
        return jsonify(error=str(exc), code="INVALID_SELECTION"), 409


#-------------------------
def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("purge-expired-holds")
    def purge_expired_holds_cmd():
        """Delete unpaid holds past their expiry. Safe to run from cron."""
        deleted = purge_expired_holds()
        click.echo(f"Deleted {deleted} expired holds")

    @app.cli.command("seed-defaults")
    def seed_defaults_cmd():
        """Create roles, court types, rules, settings and gateways if missing."""
        seed_roles()
        seed_defaults()
        click.echo("Defaults seeded")


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
