"""Client for the external payout service that sends funds to a wallet.

The payout service is the system of record for whether money left. Its
answer is folded into three outcomes; anything that does not prove the
transfer was rejected or never sent is AMBIGUOUS.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urljoin

import requests
from urllib3.exceptions import NewConnectionError

from wager_ledger.core.config import settings

logger = logging.getLogger(__name__)


class TransferStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    AMBIGUOUS = "ambiguous"


@dataclass
class TransferResult:
    status: TransferStatus
    reference: Optional[str] = None
    detail: Optional[str] = None


class TransferClient(Protocol):
    def transfer(self, wallet_address: str, amount: int, reference: str) -> TransferResult:
        ...


def _never_sent(e: requests.ConnectionError) -> bool:
    """True only when the connection was never opened, so no request went out."""
    if isinstance(e, requests.ConnectTimeout):
        return True
    reason = e.args[0] if e.args else None
    # requests wraps urllib3's MaxRetryError, which carries the cause in .reason
    reason = getattr(reason, "reason", reason)
    return isinstance(reason, NewConnectionError)


class HttpTransferClient:
    def __init__(self, base_url: Optional[str], timeout: float = 8, session=None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self) -> str:
        return urljoin(self.base_url.rstrip("/") + "/", "transfers")

    def transfer(self, wallet_address: str, amount: int, reference: str) -> TransferResult:
        if not self.base_url:
            return TransferResult(TransferStatus.FAILURE, detail="Transfer service is not configured")

        payload = {"wallet_address": wallet_address, "amount": amount, "reference": reference}
        try:
            r = self.session.post(self._url(), json=payload, timeout=self.timeout)
        except requests.ConnectionError as e:
            if not _never_sent(e):
                return self._ambiguous(reference, f"Connection dropped before confirmation: {e}")
            logger.warning("Transfer %s not sent, service unreachable: %s", reference, e)
            return TransferResult(TransferStatus.FAILURE, detail=f"Transfer service unreachable: {e}")
        except requests.Timeout as e:
            return self._ambiguous(reference, f"Timed out waiting for confirmation: {e}")
        except requests.RequestException as e:
            return self._ambiguous(reference, f"Transfer request broke mid-flight: {e}")

        if 400 <= r.status_code < 500:
            return TransferResult(
                TransferStatus.FAILURE,
                detail=f"Transfer rejected ({r.status_code}): {r.text[:200]}",
            )
        if r.status_code >= 500:
            return self._ambiguous(reference, f"Transfer service error ({r.status_code})")

        try:
            body = r.json()
        except ValueError:
            return self._ambiguous(reference, "Unreadable transfer confirmation")

        status = str(body.get("status", "")).lower() if isinstance(body, dict) else ""
        if status == "confirmed":
            return TransferResult(TransferStatus.SUCCESS, reference=body.get("signature"))
        if status == "failed":
            return TransferResult(TransferStatus.FAILURE, detail=body.get("error") or "Transfer failed")
        return self._ambiguous(reference, f"Unconfirmed transfer status: {status or 'missing'}")

    @staticmethod
    def _ambiguous(reference: str, detail: str) -> TransferResult:
        logger.error("Transfer %s outcome unknown: %s", reference, detail)
        return TransferResult(TransferStatus.AMBIGUOUS, detail=detail)


def get_transfer_client() -> TransferClient:
    return HttpTransferClient(
        settings.TRANSFER_SERVICE_URL,
        timeout=settings.TRANSFER_TIMEOUT_SECONDS,
    )
