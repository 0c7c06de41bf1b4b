from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wager_ledger.core.database import get_db
from wager_ledger.routes.dependencies import admin_only
from wager_ledger.schemas.withdrawal import (
    ResolveWithdrawalRequest,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalResultResponse,
)
from wager_ledger.services import ledger_service
from wager_ledger.services.transfer_service import TransferClient, get_transfer_client

router = APIRouter(prefix="/withdrawals", tags=["Withdrawals"])


def _result(player, attempt):
    return {
        "balance": player.balance,
        "available_balance": player.available_balance,
        "withdrawal": attempt,
    }


@router.post("", response_model=WithdrawalResultResponse)
def request_withdrawal(
    data: WithdrawalRequest,
    db: Session = Depends(get_db),
    transfer_client: TransferClient = Depends(get_transfer_client),
):
    player, attempt = ledger_service.withdraw(
        db,
        transfer_client,
        data.wallet_address,
        data.request_id,
        amount=data.amount,
    )
    return _result(player, attempt)


@router.get("/unresolved", response_model=List[WithdrawalResponse])
def unresolved_withdrawals(_=Depends(admin_only), db: Session = Depends(get_db)):
    return ledger_service.list_unresolved(db)


@router.get("/{request_id}", response_model=WithdrawalResponse)
def get_withdrawal(request_id: str, db: Session = Depends(get_db)):
    return ledger_service.get_withdrawal(db, request_id)


@router.post("/{request_id}/resolve", response_model=WithdrawalResultResponse)
def resolve_withdrawal(
    request_id: str,
    data: ResolveWithdrawalRequest,
    _=Depends(admin_only),
    db: Session = Depends(get_db),
):
    player, attempt = ledger_service.resolve_withdrawal(
        db, request_id, data.transferred, reference=data.transfer_reference
    )
    return _result(player, attempt)
