"""
Pydantic schemas for Settlement entity.
"""
from pydantic import BaseModel
from typing import List, Dict, Any, Optional
from datetime import date as date_type, datetime
from decimal import Decimal

from voltdine.models.settlement import SettlementRequestType, SettlementStatus


class SettlementRequest(BaseModel):
    """Schema for a vendor's settlement request."""
    date: Optional[date_type] = None  # Single day to settle
    period_start: Optional[date_type] = None
    period_end: Optional[date_type] = None
    amount: Decimal  # Amount the vendor expects to receive
    reason: Optional[str] = None


class SettlementCreatedResponse(BaseModel):
    """Schema for the settlement request response."""
    settlement_id: str
    status: SettlementStatus
    amount: Decimal
    transaction_date: str
    requested_date: Optional[str] = None
    is_for_past_date: bool = False
    breakdown: Dict[str, Any]
    message: str


class SettlementResponse(BaseModel):
    """Schema for a settlement in history listings."""
    id: int
    settlement_code: str
    amount: Decimal
    status: SettlementStatus
    request_type: SettlementRequestType
    settlement_date: date_type
    period_start: datetime
    period_end: datetime
    transaction_ids: List[int]
    order_ids: List[int]
    details: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processing_notes: Optional[str] = None
    payment_reference: Optional[str] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    """Schema for pagination info."""
    current_page: int
    total_pages: int
    total_records: int
    has_next: bool
    has_prev: bool


class SettlementHistoryResponse(BaseModel):
    """Schema for paginated settlement history."""
    settlements: List[SettlementResponse]
    pagination: Pagination


class SettlementStatusUpdate(BaseModel):
    """Schema for an admin status change."""
    status: SettlementStatus
    payment_reference: Optional[str] = None
    processing_notes: Optional[str] = None


class BalanceResponse(BaseModel):
    """Schema for a vendor's all-time balance."""
    total_balance: Decimal
    total_charging_station_balance: Decimal
    total_restaurant_balance: Decimal
    total_withdrawn: Decimal
    pending_withdrawal: Decimal
