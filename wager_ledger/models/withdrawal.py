from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from datetime import datetime
from wager_ledger.core.database import Base

PENDING = "pending"
SUCCEEDED = "succeeded"
FAILED = "failed"
AMBIGUOUS = "ambiguous"

FINAL_STATUSES = (SUCCEEDED, FAILED)


class WithdrawalAttempt(Base):
    __tablename__ = "withdrawal_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(128), unique=True, nullable=False)
    wallet_address = Column(
        String(64), ForeignKey("players.wallet_address"), nullable=False, index=True
    )

    amount = Column(BigInteger, nullable=False)
    status = Column(String(16), nullable=False, default=PENDING)  # pending | succeeded | failed | ambiguous

    transfer_reference = Column(String(128), nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)
