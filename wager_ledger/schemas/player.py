from pydantic import BaseModel
from datetime import datetime


class PlayerCreate(BaseModel):
    wallet_address: str


class PlayerResponse(BaseModel):
    wallet_address: str
    wins: int
    losses: int
    ties: int
    balance: int
    held_balance: int
    available_balance: int
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class HistoryTotals(BaseModel):
    games: int
    wins: int
    losses: int
    ties: int
    net_delta: int


class PlayerStatsResponse(PlayerResponse):
    games_played: int
    win_rate: float
    history: HistoryTotals
