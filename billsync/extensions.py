"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask import jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit; limits are per-route
    storage_uri="memory://",
)


@login_manager.request_loader
def load_account_from_request(request):
    """Resolve the caller from an `Authorization: Bearer <token>` header.

    Tokens are issued by the identity system (see services/identity.py).
    Imports lazily to avoid circular deps.
    """
    from billsync.services.identity import load_account_from_token

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return load_account_from_token(token.strip())


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 instead of a login redirect; every caller is an API client."""
    return jsonify({
        "error": "unauthenticated",
        "message": "A valid identity token is required.",
    }), 401
