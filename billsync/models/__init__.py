# Models package: import all models here so Alembic can discover them.

from billsync.models.account import Account  # noqa: F401
from billsync.models.stripe_event import StripeEvent  # noqa: F401
from billsync.models.audit import AuditEvent  # noqa: F401
