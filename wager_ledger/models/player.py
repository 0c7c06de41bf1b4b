from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, String
from datetime import datetime
from wager_ledger.core.database import Base

WALLET_ADDRESS_LENGTH = 64


class Player(Base):
    __tablename__ = "players"

    wallet_address = Column(String(WALLET_ADDRESS_LENGTH), primary_key=True)

    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    ties = Column(Integer, nullable=False, default=0)

    # lamports
    balance = Column(BigInteger, nullable=False, default=0)
    # reserved by withdrawals whose transfer is not settled yet
    held_balance = Column(BigInteger, nullable=False, default=0)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_players_balance_non_negative"),
        CheckConstraint(
            "held_balance >= 0 AND held_balance <= balance",
            name="ck_players_held_within_balance",
        ),
        CheckConstraint("wins >= 0 AND losses >= 0 AND ties >= 0", name="ck_players_counters"),
    )

    @property
    def available_balance(self) -> int:
        return self.balance - self.held_balance

    @property
    def games_played(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return round(self.wins / decided * 100, 1) if decided else 0.0
