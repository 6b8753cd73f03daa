import logging
from decimal import Decimal

import click
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from models import db
from models.coach import Coach
from models.user import User
from routes import (
    auth_bp,
    availability_bp,
    booking_bp,
    health_bp,
    payments_bp,
    schedule_bp,
    webhook_bp,
)
from services.errors import CoachingError
from services.gateway import init_gateway
from utils.auth_context import load_current_user
from utils.seed import ensure_role, seed_roles

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(schedule_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    init_gateway(app)

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles at startup (idempotent)
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(CoachingError)
    def _coaching_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def _user_or_exit(email):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException("User not found")
    return user


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = _user_or_exit(email)
        admin_role = ensure_role("ADMIN")
        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()
        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("approve-coach")
    @click.argument("email")
    @click.option("--rate", type=Decimal, default=None, help="Override the coach's hourly rate.")
    def approve_coach(email, rate):
        """Approve a coach profile so its slots become bookable."""
        user = _user_or_exit(email)
        coach = Coach.query.filter_by(user_id=user.id).first()
        if not coach:
            raise click.ClickException("User has no coach profile")
        coach.status = "approved"
        if rate is not None:
            coach.hourly_rate = rate
        db.session.commit()
        click.echo(f"Coach {user.email} approved at {coach.hourly_rate}/h")

    @app.cli.command("generate-slots")
    @click.argument("email")
    @click.option("--weeks", type=int, default=None, help="Weeks ahead to materialise.")
    def generate_slots(email, weeks):
        """Materialise a coach's weekly template into bookable slots."""
        from services.schedule import generate_slots_from_template

        user = _user_or_exit(email)
        coach = Coach.query.filter_by(user_id=user.id).first()
        if not coach:
            raise click.ClickException("User has no coach profile")
        try:
            created, skipped = generate_slots_from_template(coach, weeks=weeks)
        except CoachingError as exc:
            raise click.ClickException(exc.message)
        click.echo(f"Created {created} slots ({skipped} skipped)")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
