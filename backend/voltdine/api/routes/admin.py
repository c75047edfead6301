"""
Admin routes for driving settlements through payout and reconciling vendors.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from voltdine.db.session import get_db
from voltdine.schemas.settlement import SettlementResponse, SettlementStatusUpdate
from voltdine.api.dependencies import get_current_admin
from voltdine.core.utils import format_response
from voltdine.services import settlement_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/settlements/{settlement_id}/status", response_model=SettlementResponse)
async def update_settlement_status(
    settlement_id: int,
    update: SettlementStatusUpdate,
    admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Move a settlement to processing, completed or rejected."""
    return settlement_service.advance_settlement(
        db,
        settlement_id,
        update.status,
        payment_reference=update.payment_reference,
        processing_notes=update.processing_notes,
    )


@router.post("/vendors/{vendor_id}/release-settlement-lock")
async def release_settlement_lock(
    vendor_id: int,
    admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Re-enable settlement requests for a vendor halted by a consistency violation."""
    vendor = settlement_service.release_settlement_lock(db, vendor_id)
    return format_response(
        {"vendor_id": vendor.id, "settlement_locked": vendor.settlement_locked},
        message=f"Settlement lock released by {admin}"
    )
