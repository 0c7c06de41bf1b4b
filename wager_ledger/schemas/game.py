from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class GameResultCreate(BaseModel):
    wallet_address: str
    outcome: str
    wager_delta: int = 0
    request_id: Optional[str] = None


class GameRecordResponse(BaseModel):
    id: int
    wallet_address: str
    outcome: str
    wager_delta: int
    balance_after: int
    played_at: datetime

    class Config:
        from_attributes = True


class HistoryPageResponse(BaseModel):
    items: List[GameRecordResponse]
    next_cursor: Optional[int] = None
