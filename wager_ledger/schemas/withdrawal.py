from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class WithdrawalRequest(BaseModel):
    wallet_address: str
    request_id: str
    # full available balance when omitted
    amount: Optional[int] = None


class ResolveWithdrawalRequest(BaseModel):
    transferred: bool
    transfer_reference: Optional[str] = None


class WithdrawalResponse(BaseModel):
    id: int
    request_id: str
    wallet_address: str
    amount: int
    status: str
    transfer_reference: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalResultResponse(BaseModel):
    balance: int
    available_balance: int
    withdrawal: WithdrawalResponse
