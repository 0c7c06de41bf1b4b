from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wager_ledger.core.database import get_db
from wager_ledger.schemas.player import PlayerCreate, PlayerResponse, PlayerStatsResponse
from wager_ledger.services import history_service, player_service

router = APIRouter(prefix="/players", tags=["Players"])


@router.post("", response_model=PlayerResponse)
def create_or_get_player(data: PlayerCreate, db: Session = Depends(get_db)):
    return player_service.get_or_create(db, data.wallet_address)


@router.get("/{wallet_address}", response_model=PlayerStatsResponse)
def get_player_stats(wallet_address: str, db: Session = Depends(get_db)):
    player = player_service.get(db, wallet_address)
    snapshot = PlayerResponse.model_validate(player).model_dump()
    return {
        **snapshot,
        "games_played": player.games_played,
        "win_rate": player.win_rate,
        "history": history_service.summarize(db, wallet_address),
    }
