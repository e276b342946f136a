from flask import Flask, jsonify
from config import Config
from errors import AppError
from routes import health_bp, stations_bp, booking_bp, payments_bp

from models import db
from flask_migrate import Migrate
from utils.seed import seed_roles
from security.session import load_current_user
from services.gateway import build_gateway
from services.notifications import Mailer


def create_app(config_overrides=None, gateway=None, mailer=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(stations_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Payment gateway client and mailer are built once and shared by every request
    app.extensions["adslot"] = {
        "gateway": gateway or build_gateway(app.config),
        "mailer": mailer or Mailer(),
    }

    # Seed default roles at startup (safe & idempotent); tests seed after create_all
    if not app.config.get("TESTING"):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(AppError)
    def _app_error(err):
        if err.status_code >= 500:
            app.logger.error("%s: %s", err.code, err.message)
        return jsonify(err.to_dict()), err.status_code

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
import click
from models.user import User, Role
from security.session import create_session
from utils.roles import DEFAULT_ROLES

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    @click.option("--role", default="STATION_ADMIN", type=click.Choice(DEFAULT_ROLES), show_default=True)
    def make_admin(email, role):
        """Grant a role to a user by email, creating the user if needed (bootstrap)."""
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(email=email)
            db.session.add(user)

        role_row = Role.query.filter_by(name=role).first()
        if not role_row:
            role_row = Role(name=role)
            db.session.add(role_row)

        if role_row not in user.roles:
            user.roles.append(role_row)
        db.session.commit()

        click.echo(f"{user.email} granted {role}")

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token(email):
        """Print a session token for an existing user (local testing)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise click.ClickException("User not found")
        click.echo(create_session(user.id))

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
