import os
import logging

import click
import stripe
from flask import Flask, jsonify

from memora.config import config_by_name
from memora.extensions import db, migrate, login_manager, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # --- Third-party clients (configured once, here) ---
    stripe.api_key = app.config.get("STRIPE_SECRET_KEY")

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from memora import models  # noqa: F401

    # --- Register blueprints ---
    from memora.blueprints.payments import payments_bp
    from memora.blueprints.webhooks import webhooks_bp
    from memora.blueprints.connect import connect_bp
    from memora.blueprints.fulfillments import fulfillments_bp
    from memora.blueprints.items import items_bp
    from memora.blueprints.events import events_bp
    from memora.blueprints.invitations import invitations_bp
    from memora.blueprints.contacts import contacts_bp
    from memora.blueprints.account import account_bp
    from memora.blueprints.calendar import calendar_bp
    from memora.blueprints.places import places_bp

    app.register_blueprint(payments_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(connect_bp)
    app.register_blueprint(fulfillments_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(contacts_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(calendar_bp)
    app.register_blueprint(places_bp)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    # --- Local file serving (dev only) ---
    if app.debug:
        @app.route("/uploads/<path:filepath>")
        def serve_upload(filepath):
            """Serve uploaded files from instance/uploads in dev mode."""
            from flask import send_from_directory
            upload_dir = os.path.join(app.instance_path, "uploads")
            return send_from_directory(upload_dir, filepath)

    # --- Error handlers (JSON everywhere) ---
    def _json_error(message, status):
        return jsonify({"error": message}), status

    @app.errorhandler(400)
    def bad_request(e):
        return _json_error("Bad request", 400)

    @app.errorhandler(401)
    def unauthorized(e):
        return _json_error("Unauthorized", 401)

    @app.errorhandler(403)
    def forbidden(e):
        return _json_error("Forbidden", 403)

    @app.errorhandler(404)
    def not_found(e):
        return _json_error("Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _json_error("Method not allowed", 405)

    @app.errorhandler(413)
    def too_large(e):
        return _json_error("Request too large", 413)

    @app.errorhandler(429)
    def rate_limited(e):
        return _json_error("Too many requests. Please try again later.", 429)

    @app.errorhandler(500)
    def server_error(e):
        return _json_error("Internal server error", 500)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=()"
        )
        # JSON API: nothing here should ever load or frame content
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none';"
        )
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("send-reminders")
    @click.option("--dry-run", is_flag=True, help="Show what would be sent without actually sending.")
    def send_reminders(dry_run):
        """Send event reminder emails that are due.

        Picks up to 50 unsent reminders whose scheduled time has passed and
        emails the event owner (and accepted members, when the reminder
        asks for it). Meant for an hourly cron.

        Usage:
            flask send-reminders
            flask send-reminders --dry-run
        """
        from memora.services.reminder_service import process_reminders
        process_reminders(dry_run=dry_run)

    @app.cli.command("verify-stripe-connect")
    @click.argument("user_id")
    def verify_stripe_connect(user_id):
        """Print a user's Connect account state as Stripe sees it.

        Usage:
            flask verify-stripe-connect <supabase-user-id>
        """
        from memora.services.stripe_service import get_connect_status, get_payment_settings

        settings = get_payment_settings(user_id)
        if not settings or not settings.stripe_connect_account_id:
            click.echo(f"No Connect account for user {user_id}.")
            return

        try:
            status = get_connect_status(settings)
        except stripe.error.StripeError as e:
            click.echo(f"ERROR: {e}")
            return

        click.echo("")
        click.echo("=" * 60)
        click.echo(f"  Account:            {status['accountId']}")
        click.echo(f"  Onboarding done:    {status['onboardingCompleted']}")
        click.echo(f"  Can receive payouts: {status['canReceivePayouts']}")
        for key, value in status["details"].items():
            click.echo(f"  {key}: {value}")
        click.echo("=" * 60)
