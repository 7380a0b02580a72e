"""Billing error taxonomy.

Every error carries an HTTP status and a machine-readable code so the
blueprints can translate it into a JSON response without inspecting
the exception type.

- VerificationError: untrusted webhook input, always rejected.
- NotFound / AlreadyLinked: data-integrity conditions, never auto-repaired.
- PreconditionFailed: caller error on the action gateway.
- Unauthenticated: missing or invalid caller identity.
- Transient: Stripe or database timeout, safe for the caller to retry.
- Internal: anything unexpected. The message shown to callers is generic.
"""


class BillingError(Exception):
    """Base class for all billing errors."""

    status_code = 500
    code = "internal"

    def __init__(self, message=None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class VerificationError(BillingError):
    status_code = 400
    code = "verification_failed"


class NotFound(BillingError):
    status_code = 404
    code = "not_found"


class AlreadyLinked(BillingError):
    status_code = 409
    code = "already_linked"


class PreconditionFailed(BillingError):
    status_code = 400
    code = "failed_precondition"


class Unauthenticated(BillingError):
    status_code = 401
    code = "unauthenticated"


class Transient(BillingError):
    status_code = 503
    code = "unavailable"


class Internal(BillingError):
    status_code = 500
    code = "internal"

    def to_dict(self):
        # Never leak the underlying message to callers.
        return {"error": self.code, "message": "An internal error occurred."}
