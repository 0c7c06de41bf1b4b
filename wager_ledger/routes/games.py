from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wager_ledger.core.database import get_db
from wager_ledger.schemas.game import GameResultCreate, HistoryPageResponse
from wager_ledger.schemas.player import PlayerResponse
from wager_ledger.services import history_service, ledger_service

router = APIRouter(tags=["Games"])


@router.post("/games", response_model=PlayerResponse)
def submit_game_result(data: GameResultCreate, db: Session = Depends(get_db)):
    return ledger_service.record_outcome(
        db,
        data.wallet_address,
        data.outcome,
        data.wager_delta,
        request_id=data.request_id,
    )


@router.get("/history", response_model=HistoryPageResponse)
def list_history(
    wallet_address: str,
    cursor: Optional[int] = Query(default=None, ge=1, le=2 ** 63 - 1),
    limit: Optional[int] = Query(default=None, ge=1),
    outcome: Optional[str] = None,
    db: Session = Depends(get_db),
):
    page = history_service.list_by_player(
        db, wallet_address, cursor=cursor, limit=limit, outcome=outcome
    )
    return {"items": page.items, "next_cursor": page.next_cursor}
