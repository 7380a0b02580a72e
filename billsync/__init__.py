import os
import json
import logging

import click
from flask import Flask, jsonify

from billsync.config import config_by_name
from billsync.extensions import db, migrate, login_manager, limiter
from billsync.stripe_client import build_stripe_client


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

    # --- Stripe client (injected into services, never a module global) ---
    app.extensions["stripe_client"] = build_stripe_client(app.config)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from billsync import models  # noqa: F401

    # --- Register blueprints ---
    from billsync.blueprints.webhooks import webhooks_bp
    from billsync.blueprints.billing import billing_bp
    from billsync.blueprints.accounts import accounts_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(accounts_bp)

    @app.route("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "rate_limited"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "internal"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        # Strict Transport Security (only in production)
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

    @app.cli.command("provision-customer")
    @click.argument("account_id")
    @click.argument("email", required=False)
    def provision_customer_cmd(account_id, email):
        """Create (or look up) the Stripe customer for an account.

        Usage:
            flask provision-customer acct_123 joe@example.com
        """
        from billsync.services.provisioning import provision_customer
        from billsync.stripe_client import get_stripe_client

        customer_id = provision_customer(get_stripe_client(), account_id, email)
        click.echo(f"Account {account_id} -> {customer_id}")

    @app.cli.command("issue-token")
    @click.argument("account_id")
    def issue_token_cmd(account_id):
        """Print a bearer token for an account (local development).

        Usage:
            flask issue-token acct_123
        """
        from billsync.services.identity import issue_token

        click.echo(issue_token(account_id))

    @app.cli.command("replay-event")
    @click.argument("event_id")
    def replay_event_cmd(event_id):
        """Fetch an event from Stripe and run it through reconciliation.

        For repairing "unknown customer" failures once the account link
        has been fixed. Replaying an already-applied event is a no-op.

        Usage:
            flask replay-event evt_1Abc...
        """
        from billsync.services.reconciliation import apply_event
        from billsync.services.signature import WebhookEvent
        from billsync.stripe_client import get_stripe_client

        stripe_event = get_stripe_client().events.retrieve(event_id)
        # str() of a StripeObject is its JSON form.
        event = WebhookEvent.from_dict(json.loads(str(stripe_event)))
        result = apply_event(event)
        click.echo(f"{event_id}: {result.outcome} ({result.reason})")
