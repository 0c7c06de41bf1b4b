from dataclasses import dataclass
from typing import Iterator, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from wager_ledger.core.config import settings
from wager_ledger.core.errors import InvalidInput
from wager_ledger.models.game_record import OUTCOMES, GameRecord
from wager_ledger.services.player_service import validate_wallet_address


@dataclass
class HistoryPage:
    items: List[GameRecord]
    next_cursor: Optional[int]


def append(db: Session, record: GameRecord) -> GameRecord:
    # staged only; the caller owns the transaction
    db.add(record)
    db.flush()
    return record


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.HISTORY_PAGE_SIZE
    return max(1, min(int(limit), settings.HISTORY_MAX_PAGE_SIZE))


def list_by_player(
    db: Session,
    wallet_address: str,
    cursor: Optional[int] = None,
    limit: Optional[int] = None,
    outcome: Optional[str] = None,
) -> HistoryPage:
    """Newest-first page of a player's games.

    ``cursor`` is the id of the last record of the previous page; records
    appended later never shift the pages that follow it.
    """
    validate_wallet_address(wallet_address)
    if outcome is not None and outcome not in OUTCOMES:
        raise InvalidInput(f"Unknown outcome {outcome!r}")
    if cursor is not None and cursor < 1:
        raise InvalidInput("Cursor must be a positive record id")
    limit = _clamp_limit(limit)

    query = db.query(GameRecord).filter(GameRecord.wallet_address == wallet_address)
    if outcome:
        query = query.filter(GameRecord.outcome == outcome)
    if cursor is not None:
        query = query.filter(GameRecord.id < cursor)

    # one extra row tells us whether another page exists
    rows = query.order_by(GameRecord.id.desc()).limit(limit + 1).all()
    items = rows[:limit]
    next_cursor = items[-1].id if len(rows) > limit else None
    return HistoryPage(items=items, next_cursor=next_cursor)


def iter_history(
    db: Session,
    wallet_address: str,
    page_size: Optional[int] = None,
    outcome: Optional[str] = None,
) -> Iterator[GameRecord]:
    cursor = None
    while True:
        page = list_by_player(db, wallet_address, cursor=cursor, limit=page_size, outcome=outcome)
        yield from page.items
        if page.next_cursor is None:
            return
        cursor = page.next_cursor


def summarize(db: Session, wallet_address: str) -> dict:
    validate_wallet_address(wallet_address)
    row = (
        db.query(
            func.count(GameRecord.id),
            func.sum(case((GameRecord.outcome == "win", 1), else_=0)),
            func.sum(case((GameRecord.outcome == "loss", 1), else_=0)),
            func.sum(case((GameRecord.outcome == "tie", 1), else_=0)),
            func.sum(GameRecord.wager_delta),
        )
        .filter(GameRecord.wallet_address == wallet_address)
        .one()
    )
    return {
        "games": row[0] or 0,
        "wins": row[1] or 0,
        "losses": row[2] or 0,
        "ties": row[3] or 0,
        "net_delta": row[4] or 0,
    }
