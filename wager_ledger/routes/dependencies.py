import hmac
from typing import Optional

from fastapi import Header

from wager_ledger.core.config import settings
from wager_ledger.core.errors import AccessDenied


def admin_only(x_admin_token: Optional[str] = Header(default=None)):
    if not settings.ADMIN_TOKEN:
        raise AccessDenied("Reconciliation is disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise AccessDenied("Access denied")
    return True
