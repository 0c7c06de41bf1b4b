"""Ledger service: the only writer of player counters and balances.

Every balance change is a conditional UPDATE whose guard is evaluated by
the database, so two concurrent requests can never both spend the same
funds. Withdrawals hold funds first, call the payout service outside any
transaction, and only debit once the transfer is confirmed.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from wager_ledger.core.config import settings
from wager_ledger.core.database import ledger_transaction
from wager_ledger.core.errors import (
    AttemptAlreadyResolved,
    InsufficientBalance,
    InvalidInput,
    StorageUnavailable,
    TransferAmbiguous,
    TransferFailed,
    WithdrawalInProgress,
    WithdrawalNotFound,
)
from wager_ledger.models.game_record import OUTCOMES, GameRecord
from wager_ledger.models.player import Player
from wager_ledger.models.withdrawal import (
    AMBIGUOUS,
    FAILED,
    FINAL_STATUSES,
    PENDING,
    SUCCEEDED,
    WithdrawalAttempt,
)
from wager_ledger.services import history_service, player_service
from wager_ledger.services.transfer_service import TransferClient, TransferResult, TransferStatus

logger = logging.getLogger(__name__)

COUNTERS = {"win": Player.wins, "loss": Player.losses, "tie": Player.ties}

REQUEST_ID_LENGTH = 128

# balances are BIGINT columns
MAX_AMOUNT = 2 ** 63 - 1


def _validate_amount(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer amount of lamports")
    if abs(value) > MAX_AMOUNT:
        raise InvalidInput(f"{name} is out of range")
    return value


def _validate_request_id(request_id) -> str:
    if not isinstance(request_id, str) or not request_id.strip():
        raise InvalidInput("Missing or invalid request id")
    if len(request_id) > REQUEST_ID_LENGTH:
        raise InvalidInput("Request id is too long")
    return request_id


def _fresh_player(db: Session, wallet_address: str) -> Player:
    return (
        db.query(Player)
        .populate_existing()
        .filter(Player.wallet_address == wallet_address)
        .one()
    )


def _fresh_attempt(db: Session, request_id: str) -> Optional[WithdrawalAttempt]:
    return (
        db.query(WithdrawalAttempt)
        .populate_existing()
        .filter(WithdrawalAttempt.request_id == request_id)
        .first()
    )


def _check_replay(settled: GameRecord, wallet_address: str, outcome: str, wager_delta: int) -> None:
    """A repeated request id must carry the same game it settled the first time."""
    if settled.wallet_address != wallet_address:
        raise InvalidInput("Request id already used by another wallet")
    if settled.outcome != outcome or settled.wager_delta != wager_delta:
        raise InvalidInput(
            f"Request id already settled a different game "
            f"({settled.outcome}, delta {settled.wager_delta})"
        )


# =========================
#  GAME SETTLEMENT
# =========================

def record_outcome(
    db: Session,
    wallet_address: str,
    outcome: str,
    wager_delta: int,
    request_id: Optional[str] = None,
) -> Player:
    player_service.validate_wallet_address(wallet_address)
    if outcome not in OUTCOMES:
        raise InvalidInput(f"Unknown outcome {outcome!r}, expected one of {', '.join(OUTCOMES)}")
    _validate_amount(wager_delta, "wager_delta")

    if request_id is not None:
        _validate_request_id(request_id)
        settled = db.query(GameRecord).filter(GameRecord.request_id == request_id).first()
        if settled:
            _check_replay(settled, wallet_address, outcome, wager_delta)
            logger.info("Game %s already settled as record %s", request_id, settled.id)
            return _fresh_player(db, wallet_address)

    player_service.get_or_create(db, wallet_address)

    counter = COUNTERS[outcome]
    now = datetime.utcnow()
    try:
        with ledger_transaction(db):
            result = db.execute(
                update(Player)
                .where(Player.wallet_address == wallet_address)
                .where(Player.balance - Player.held_balance + wager_delta >= 0)
                .values({
                    counter: counter + 1,
                    Player.balance: Player.balance + wager_delta,
                    Player.version: Player.version + 1,
                    Player.updated_at: now,
                })
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "Rejected %s for %s: delta %s exceeds available balance",
                    outcome, wallet_address, wager_delta,
                )
                raise InsufficientBalance(
                    f"A delta of {wager_delta} would take the balance below zero"
                )

            balance_after = (
                db.query(Player.balance)
                .filter(Player.wallet_address == wallet_address)
                .scalar()
            )
            record = history_service.append(db, GameRecord(
                wallet_address=wallet_address,
                outcome=outcome,
                wager_delta=wager_delta,
                balance_after=balance_after,
                request_id=request_id,
                played_at=now,
            ))
    except IntegrityError:
        # a concurrent submission with the same request id committed first
        if request_id is not None:
            settled = db.query(GameRecord).filter(GameRecord.request_id == request_id).first()
            if settled:
                _check_replay(settled, wallet_address, outcome, wager_delta)
                return _fresh_player(db, wallet_address)
        raise

    logger.info(
        "Settled %s for %s: delta=%s balance=%s record=%s",
        outcome, wallet_address, wager_delta, balance_after, record.id,
    )
    return _fresh_player(db, wallet_address)


# =========================
#  WITHDRAWALS
# =========================

def get_withdrawal(db: Session, request_id: str) -> WithdrawalAttempt:
    _validate_request_id(request_id)
    attempt = _fresh_attempt(db, request_id)
    if not attempt:
        raise WithdrawalNotFound(f"No withdrawal for request {request_id}")
    return attempt


def list_unresolved(db: Session):
    return (
        db.query(WithdrawalAttempt)
        .filter(WithdrawalAttempt.status.in_((PENDING, AMBIGUOUS)))
        .order_by(WithdrawalAttempt.id.asc())
        .all()
    )


def withdraw(
    db: Session,
    transfer_client: TransferClient,
    wallet_address: str,
    request_id: str,
    amount: Optional[int] = None,
) -> Tuple[Player, WithdrawalAttempt]:
    """Pay ``amount`` (default: everything available) out to the wallet.

    ``request_id`` deduplicates retries: a succeeded request returns its
    stored result, an ambiguous one is never re-sent, a failed one may be
    attempted again.
    """
    player_service.validate_wallet_address(wallet_address)
    _validate_request_id(request_id)
    if amount is not None:
        _validate_amount(amount, "amount")
        if amount <= 0:
            raise InvalidInput("Withdrawal amount must be positive")

    attempt = _fresh_attempt(db, request_id)
    if attempt:
        if attempt.wallet_address != wallet_address:
            raise InvalidInput("Request id already used by another wallet")
        if attempt.status == SUCCEEDED:
            logger.info("Withdrawal %s already succeeded, returning stored result", request_id)
            return _fresh_player(db, wallet_address), attempt
        if attempt.status == PENDING:
            raise WithdrawalInProgress(f"Withdrawal {request_id} is still being processed")
        if attempt.status == AMBIGUOUS:
            raise TransferAmbiguous(
                f"Withdrawal {request_id} has an unconfirmed transfer awaiting reconciliation"
            )

    player = player_service.get(db, wallet_address)
    if amount is None:
        amount = player.available_balance
        if amount <= 0:
            raise InsufficientBalance("Nothing available to withdraw")

    _hold(db, wallet_address, request_id, amount, attempt)
    logger.info("Holding %s for withdrawal %s of %s", amount, request_id, wallet_address)

    result = _call_transfer(transfer_client, wallet_address, amount, request_id)

    # past this point the payout may have moved money
    try:
        if result.status == TransferStatus.SUCCESS:
            return _settle(db, request_id, result.reference, expected=(PENDING,))
        if result.status == TransferStatus.FAILURE:
            _release(db, request_id, result.detail, expected=(PENDING,))
        else:
            _mark_ambiguous(db, request_id, result.detail)
    except (StorageUnavailable, SQLAlchemyError) as e:
        logger.error(
            "Could not record %s transfer for withdrawal %s, attempt left pending: %s",
            result.status.value, request_id, e,
        )
        raise TransferAmbiguous(
            f"Transfer for {request_id} was sent but its outcome could not be recorded; "
            f"it will be reconciled, do not retry"
        ) from e

    if result.status == TransferStatus.FAILURE:
        raise TransferFailed(result.detail or "Transfer failed, balance unchanged")
    raise TransferAmbiguous(
        f"Transfer outcome for {request_id} is unknown; it will be reconciled, do not retry"
    )


def resolve_withdrawal(
    db: Session,
    request_id: str,
    transferred: bool,
    reference: Optional[str] = None,
) -> Tuple[Player, WithdrawalAttempt]:
    """Operator decision for a pending or ambiguous withdrawal."""
    attempt = get_withdrawal(db, request_id)
    if attempt.status in FINAL_STATUSES:
        raise AttemptAlreadyResolved(f"Withdrawal {request_id} is already {attempt.status}")
    if attempt.status == PENDING:
        age = datetime.utcnow() - attempt.updated_at
        if age < timedelta(seconds=settings.PENDING_RECONCILE_AFTER_SECONDS):
            raise WithdrawalInProgress(f"Withdrawal {request_id} may still receive a transfer answer")

    if transferred:
        logger.info("Reconciled %s as transferred", request_id)
        return _settle(db, request_id, reference, expected=(PENDING, AMBIGUOUS))

    logger.info("Reconciled %s as not transferred", request_id)
    return _release(db, request_id, "Reconciled as not transferred", expected=(PENDING, AMBIGUOUS))


def _hold(db: Session, wallet_address: str, request_id: str, amount: int, attempt) -> None:
    now = datetime.utcnow()
    try:
        with ledger_transaction(db):
            held = db.execute(
                update(Player)
                .where(Player.wallet_address == wallet_address)
                .where(Player.balance - Player.held_balance >= amount)
                .values({
                    Player.held_balance: Player.held_balance + amount,
                    Player.version: Player.version + 1,
                    Player.updated_at: now,
                })
                .execution_options(synchronize_session=False)
            )
            if held.rowcount != 1:
                logger.warning(
                    "Rejected withdrawal %s of %s for %s: insufficient balance",
                    request_id, amount, wallet_address,
                )
                raise InsufficientBalance(f"Cannot withdraw {amount}, it exceeds the available balance")

            if attempt is None:
                db.add(WithdrawalAttempt(
                    request_id=request_id,
                    wallet_address=wallet_address,
                    amount=amount,
                    status=PENDING,
                    created_at=now,
                    updated_at=now,
                ))
                db.flush()
            else:
                retried = db.execute(
                    update(WithdrawalAttempt)
                    .where(WithdrawalAttempt.id == attempt.id)
                    .where(WithdrawalAttempt.status == FAILED)
                    .values(status=PENDING, amount=amount, error=None, resolved_at=None, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if retried.rowcount != 1:
                    raise WithdrawalInProgress(f"Withdrawal {request_id} is already being retried")
    except IntegrityError as e:
        raise WithdrawalInProgress(f"Withdrawal {request_id} is already being processed") from e


def _call_transfer(client: TransferClient, wallet_address: str, amount: int, request_id: str) -> TransferResult:
    try:
        return client.transfer(wallet_address, amount, reference=request_id)
    except Exception as e:
        # the request may have reached the payout service before failing
        logger.exception("Transfer client crashed for %s", request_id)
        return TransferResult(TransferStatus.AMBIGUOUS, detail=f"Transfer client error: {e}")


def _transition(db: Session, request_id: str, expected, **values) -> int:
    return db.execute(
        update(WithdrawalAttempt)
        .where(WithdrawalAttempt.request_id == request_id)
        .where(WithdrawalAttempt.status.in_(expected))
        .values(updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    ).rowcount


def _settle(db: Session, request_id: str, reference, expected) -> Tuple[Player, WithdrawalAttempt]:
    attempt = _fresh_attempt(db, request_id)
    now = datetime.utcnow()
    with ledger_transaction(db):
        if _transition(db, request_id, expected, status=SUCCEEDED,
                       transfer_reference=reference, error=None, resolved_at=now) != 1:
            raise AttemptAlreadyResolved(f"Withdrawal {request_id} changed status concurrently")
        debited = db.execute(
            update(Player)
            .where(Player.wallet_address == attempt.wallet_address)
            .where(Player.held_balance >= attempt.amount)
            .values({
                Player.balance: Player.balance - attempt.amount,
                Player.held_balance: Player.held_balance - attempt.amount,
                Player.version: Player.version + 1,
                Player.updated_at: now,
            })
            .execution_options(synchronize_session=False)
        )
        if debited.rowcount != 1:
            raise InsufficientBalance(f"Hold for withdrawal {request_id} is missing")

    logger.info(
        "Withdrawal %s succeeded: %s debited from %s (ref %s)",
        request_id, attempt.amount, attempt.wallet_address, reference,
    )
    return _fresh_player(db, attempt.wallet_address), _fresh_attempt(db, request_id)


def _release(db: Session, request_id: str, detail, expected) -> Tuple[Player, WithdrawalAttempt]:
    attempt = _fresh_attempt(db, request_id)
    now = datetime.utcnow()
    with ledger_transaction(db):
        if _transition(db, request_id, expected, status=FAILED, error=detail, resolved_at=now) != 1:
            raise AttemptAlreadyResolved(f"Withdrawal {request_id} changed status concurrently")
        db.execute(
            update(Player)
            .where(Player.wallet_address == attempt.wallet_address)
            .values({
                Player.held_balance: Player.held_balance - attempt.amount,
                Player.version: Player.version + 1,
                Player.updated_at: now,
            })
            .execution_options(synchronize_session=False)
        )

    logger.warning("Withdrawal %s failed, hold of %s released: %s", request_id, attempt.amount, detail)
    return _fresh_player(db, attempt.wallet_address), _fresh_attempt(db, request_id)


def _mark_ambiguous(db: Session, request_id: str, detail) -> None:
    with ledger_transaction(db):
        _transition(db, request_id, (PENDING,), status=AMBIGUOUS, error=detail)
    logger.error("Withdrawal %s needs reconciliation: %s", request_id, detail)
