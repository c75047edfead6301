"""
Transaction routes for payment adjustments (additional charges and refunds).
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from voltdine.db.session import get_db
from voltdine.schemas.adjustment import (
    AdjustmentCreate,
    AdjustmentListResponse,
    AdjustmentProcess,
    AdjustmentResponse,
)
from voltdine.api.dependencies import get_current_vendor_id
from voltdine.services import adjustment_service

router = APIRouter(prefix="/vendor/transactions", tags=["transactions"])


@router.get("/{kind}/{transaction_id}/adjustments", response_model=AdjustmentListResponse)
async def list_adjustments(
    kind: str,
    transaction_id: int,
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Adjustment history and totals for one transaction."""
    transaction = adjustment_service.get_transaction(db, vendor_id, kind, transaction_id)
    return {
        "transaction_id": transaction.id,
        "kind": transaction.kind.value,
        "reference": transaction.reference,
        "adjustments": transaction.adjustments,
        "summary": adjustment_service.adjustment_summary(transaction),
    }


@router.post(
    "/{kind}/{transaction_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_adjustment(
    kind: str,
    transaction_id: int,
    adjustment_data: AdjustmentCreate,
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Record an additional charge or a refund."""
    transaction = adjustment_service.get_transaction(db, vendor_id, kind, transaction_id)
    return adjustment_service.create_adjustment(
        db,
        transaction,
        adjustment_data.type,
        adjustment_data.amount,
        adjustment_data.reason,
        adjusted_by=adjustment_data.adjusted_by,
        adjusted_by_name=adjustment_data.adjusted_by_name,
        notes=adjustment_data.notes,
        refund_method=adjustment_data.refund_method,
    )


@router.post(
    "/{kind}/{transaction_id}/adjustments/{adjustment_id}/process",
    response_model=AdjustmentResponse
)
async def process_adjustment(
    kind: str,
    transaction_id: int,
    adjustment_id: int,
    process_data: AdjustmentProcess,
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Mark a pending additional charge as paid or rejected."""
    transaction = adjustment_service.get_transaction(db, vendor_id, kind, transaction_id)
    return adjustment_service.resolve_adjustment(
        db, transaction, adjustment_id, process_data.status
    )
