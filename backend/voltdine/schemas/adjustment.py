"""
Pydantic schemas for PaymentAdjustment entity.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from voltdine.models.adjustment import AdjustedBy, AdjustmentStatus, AdjustmentType, RefundMethod


class AdjustmentCreate(BaseModel):
    """Schema for recording an additional charge or a refund."""
    type: str  # additional_charge | refund
    amount: Decimal = Field(gt=0)
    reason: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = None
    adjusted_by: str = "vendor"
    adjusted_by_name: Optional[str] = None
    refund_method: Optional[str] = None  # Refunds only, defaults to cash


class AdjustmentProcess(BaseModel):
    """Schema for resolving a pending additional charge."""
    status: str  # processed | rejected


class AdjustmentResponse(BaseModel):
    """Schema for adjustment response."""
    id: int
    type: AdjustmentType
    amount: Decimal
    status: AdjustmentStatus
    reason: str
    notes: Optional[str] = None
    adjusted_by: AdjustedBy
    adjusted_by_name: Optional[str] = None
    refund_method: Optional[RefundMethod] = None
    payment_request_id: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdjustmentSummary(BaseModel):
    original_amount: Decimal
    total_additional_charges: Decimal
    total_refunds: Decimal
    net_amount: Decimal  # What the customer ends up paying
    merchant_net_amount: Decimal  # Shown to the vendor, never below zero
    merchant_net_amount_signed: Decimal


class AdjustmentListResponse(BaseModel):
    """Schema for a transaction's adjustment history."""
    transaction_id: int
    kind: str
    reference: str
    adjustments: List[AdjustmentResponse]
    summary: AdjustmentSummary
