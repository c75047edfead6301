"""
Ledger queries: every read and write the settlement engine makes against storage.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from voltdine.models.settlement import Settlement, SettlementStatus
from voltdine.models.transaction import (
    ChargingSession,
    ChargingStatus,
    FoodOrder,
    OrderStatus,
    TransactionKind,
    TransactionSettlementStatus,
    TRANSACTION_MODELS,
)
from voltdine.models.vendor import Vendor


def get_vendor(db: Session, vendor_id: int, for_update: bool = False) -> Optional[Vendor]:
    """Load a vendor; with for_update the row stays locked until commit/rollback."""
    query = db.query(Vendor).filter(Vendor.id == vendor_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_vendor_bank_details(db: Session, vendor_id: int) -> Optional[dict]:
    vendor = get_vendor(db, vendor_id)
    if not vendor or not vendor.has_payout_account:
        return None
    return vendor.bank_details_snapshot()


def _completion_window(kind: TransactionKind, start: Optional[datetime], end: Optional[datetime]):
    """Filter clause selecting transactions whose completion time falls in [start, end)."""
    if start is None and end is None:
        return None
    if kind == TransactionKind.CHARGING:
        return or_(
            and_(ChargingSession.actual_end_time >= start, ChargingSession.actual_end_time < end),
            and_(
                ChargingSession.actual_end_time.is_(None),
                ChargingSession.updated_at >= start,
                ChargingSession.updated_at < end
            )
        )
    return and_(FoodOrder.completed_at >= start, FoodOrder.completed_at < end)


def list_completed_transactions(
    db: Session,
    vendor_id: int,
    kind: TransactionKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List:
    """Completed transactions of one kind, optionally restricted to a completion window."""
    model = TRANSACTION_MODELS[kind]
    completed = ChargingStatus.COMPLETED if kind == TransactionKind.CHARGING else OrderStatus.COMPLETED
    query = db.query(model).options(selectinload(model.adjustments)).filter(
        model.vendor_id == vendor_id,
        model.status == completed
    )
    window = _completion_window(kind, start, end)
    if window is not None:
        query = query.filter(window)
    return query.order_by(model.id).all()


def list_transactions_created_since(
    db: Session,
    vendor_id: int,
    kind: TransactionKind,
    since: datetime,
) -> List:
    """All transactions of one kind created at or after since, regardless of status."""
    model = TRANSACTION_MODELS[kind]
    return db.query(model).options(selectinload(model.adjustments)).filter(
        model.vendor_id == vendor_id,
        model.created_at >= since
    ).order_by(model.id).all()


def list_active_settlements(
    db: Session,
    vendor_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Settlement]:
    """Pending/processing settlements, optionally only those overlapping [start, end)."""
    query = db.query(Settlement).filter(
        Settlement.vendor_id == vendor_id,
        Settlement.is_active
    )
    if start is not None and end is not None:
        query = query.filter(
            Settlement.period_start < end,
            Settlement.period_end > start
        )
    return query.order_by(Settlement.requested_at, Settlement.id).all()


def get_settlements_by_ids(db: Session, settlement_ids: Iterable[int]) -> Dict[int, Settlement]:
    ids = {sid for sid in settlement_ids if sid is not None}
    if not ids:
        return {}
    rows = db.query(Settlement).filter(Settlement.id.in_(ids)).all()
    return {s.id: s for s in rows}


def list_completed_settlements(db: Session, vendor_id: int) -> List[Settlement]:
    """Completed settlements for a vendor (their amounts are what was withdrawn)."""
    return db.query(Settlement).filter(
        Settlement.vendor_id == vendor_id,
        Settlement.status == SettlementStatus.COMPLETED
    ).all()


def persist_settlement(db: Session, settlement: Settlement) -> int:
    """Stage a new settlement and return its id; the caller owns the commit."""
    db.add(settlement)
    db.flush()
    return settlement.id


def update_transaction_settlement_fields(
    db: Session,
    kind: TransactionKind,
    ids: List[int],
    settlement_id: int,
    status: TransactionSettlementStatus,
    requested_at: Optional[datetime] = None,
    requested_for: Optional[str] = None,
) -> int:
    """Bulk-mark transactions as claimed by a settlement. Returns rows touched."""
    if not ids:
        return 0
    model = TRANSACTION_MODELS[kind]
    return db.query(model).filter(model.id.in_(ids)).update(
        {
            model.settlement_status: status,
            model.settlement_id: settlement_id,
            model.settlement_requested_at: requested_at,
            model.settlement_requested_for: requested_for,
            # Keep updated_at: it is the completion-time fallback for charging sessions
            model.updated_at: model.updated_at,
        },
        synchronize_session="fetch"
    )
