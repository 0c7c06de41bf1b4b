"""Ledger error taxonomy.

Every error carries the HTTP status the API answers with and whether the
caller may safely retry. ``effect`` tells the caller if the failed request
may still have moved money.
"""

from __future__ import annotations


class LedgerError(RuntimeError):
    """Base exception the API maps to structured error responses."""

    code = "ledger_error"
    status_code = 400
    retryable = False
    effect = "none"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.__class__.__doc__)
        self.detail = detail or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "detail": self.detail,
            "retryable": self.retryable,
            "effect": self.effect,
        }


class InvalidInput(LedgerError):
    """The request was rejected before any mutation."""

    code = "invalid_input"


class AccessDenied(LedgerError):
    """The operator token is missing or wrong."""

    code = "access_denied"
    status_code = 403


class PlayerNotFound(LedgerError):
    """No player is registered for this wallet address."""

    code = "player_not_found"
    status_code = 404


class WithdrawalNotFound(LedgerError):
    """No withdrawal exists for this request id."""

    code = "withdrawal_not_found"
    status_code = 404


class InsufficientBalance(LedgerError):
    """The requested debit exceeds the available balance."""

    code = "insufficient_balance"
    status_code = 409


class WithdrawalInProgress(LedgerError):
    """A withdrawal with this request id is still being processed."""

    code = "withdrawal_in_progress"
    status_code = 409
    effect = "unknown"


class AttemptAlreadyResolved(LedgerError):
    """The withdrawal already reached a final status."""

    code = "attempt_already_resolved"
    status_code = 409


class TransferFailed(LedgerError):
    """The payout service rejected the transfer, the balance is untouched."""

    code = "transfer_failed"
    status_code = 502
    retryable = True


class TransferAmbiguous(LedgerError):
    """The payout outcome is unknown; the attempt awaits reconciliation."""

    code = "transfer_ambiguous"
    status_code = 504
    effect = "unknown"


class StorageUnavailable(LedgerError):
    """The database failed and the operation was rolled back."""

    code = "storage_unavailable"
    status_code = 503
    retryable = True


__all__ = [
    "LedgerError",
    "InvalidInput",
    "AccessDenied",
    "PlayerNotFound",
    "WithdrawalNotFound",
    "InsufficientBalance",
    "WithdrawalInProgress",
    "AttemptAlreadyResolved",
    "TransferFailed",
    "TransferAmbiguous",
    "StorageUnavailable",
]
