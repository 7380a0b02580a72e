"""Security tests.

Tests:
- Security headers are present on responses
- JSON error pages
- Identity token issuing / verification
"""

from billsync.services.identity import issue_token, load_account_from_token


class TestSecurityHeaders:
    """Verify security headers are present on responses."""

    def test_x_content_type_options(self, client):
        response = client.get("/healthz")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_x_frame_options(self, client):
        response = client.get("/healthz")
        assert response.headers.get("X-Frame-Options") == "DENY"

    def test_referrer_policy(self, client):
        response = client.get("/healthz")
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_no_hsts_in_debug(self, client):
        """HSTS should NOT be set in debug/test mode."""
        response = client.get("/healthz")
        assert response.headers.get("Strict-Transport-Security") is None

    def test_headers_on_error_pages(self, client):
        response = client.get("/nonexistent-page")
        assert response.status_code == 404
        assert response.get_json() == {"error": "not_found"}
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_webhook_rejects_get(self, client):
        response = client.get("/stripe/webhooks")
        assert response.status_code == 405


class TestIdentityTokens:

    def test_round_trip(self, linked_account):
        account = load_account_from_token(issue_token(linked_account))
        assert account is not None
        assert account.id == linked_account

    def test_garbage_token(self, linked_account):
        assert load_account_from_token("not-a-token") is None

    def test_expired_token(self, app, linked_account, monkeypatch):
        token = issue_token(linked_account)
        monkeypatch.setitem(app.config, "IDENTITY_TOKEN_MAX_AGE", -1)
        assert load_account_from_token(token) is None

    def test_token_signed_with_other_secret(self, app, linked_account, monkeypatch):
        token = issue_token(linked_account)
        monkeypatch.setitem(app.config, "SECRET_KEY", "rotated-secret")
        assert load_account_from_token(token) is None
