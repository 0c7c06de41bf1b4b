from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from datetime import datetime
from wager_ledger.core.database import Base

OUTCOMES = ("win", "loss", "tie")


class GameRecord(Base):
    __tablename__ = "game_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), ForeignKey("players.wallet_address"), nullable=False)

    outcome = Column(String(8), nullable=False)  # win | loss | tie
    wager_delta = Column(BigInteger, nullable=False, default=0)
    balance_after = Column(BigInteger, nullable=False)

    request_id = Column(String(128), unique=True, nullable=True)
    played_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    player = relationship("Player")

    __table_args__ = (
        Index("idx_game_records_wallet_id", "wallet_address", "id"),
    )
