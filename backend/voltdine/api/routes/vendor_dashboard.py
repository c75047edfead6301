"""
Vendor dashboard routes: revenue analytics, balance and settlement requests.

Handlers are plain functions so FastAPI runs them, retry backoff included, in
its threadpool rather than on the event loop.
"""
from datetime import date
from math import ceil
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from voltdine.db.session import get_db
from voltdine.schemas.analytics import DashboardStatsResponse, TransactionAnalyticsResponse
from voltdine.schemas.settlement import (
    BalanceResponse,
    SettlementCreatedResponse,
    SettlementHistoryResponse,
    SettlementRequest,
)
from voltdine.api.dependencies import get_current_vendor_id
from voltdine.core.exceptions import NotFoundError
from voltdine.core.utils import retry_transient
from voltdine.services import analytics_service, settlement_service
from voltdine.services.balance_service import get_balance
from voltdine.services.ledger_queries import get_vendor

router = APIRouter(prefix="/vendor/dashboard", tags=["vendor-dashboard"])


@router.get("/transaction-analytics", response_model=TransactionAnalyticsResponse)
def transaction_analytics(
    target_date: Optional[date] = Query(None, alias="date"),
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Revenue for a day (or the current month), timeline and transaction list."""
    return retry_transient(
        lambda: analytics_service.get_transaction_analytics(db, vendor_id, target_date)
    )


@router.get("/stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Headline booking counts and revenue."""
    return retry_transient(lambda: analytics_service.get_dashboard_stats(db, vendor_id))


@router.get("/balance", response_model=BalanceResponse)
def balance(
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """All-time balance, withdrawals and what is left to withdraw."""
    if not get_vendor(db, vendor_id):
        raise NotFoundError("Vendor not found", {"vendor_id": vendor_id})
    return retry_transient(lambda: get_balance(db, vendor_id))


@router.post(
    "/request-settlement",
    response_model=SettlementCreatedResponse,
    status_code=status.HTTP_201_CREATED
)
def request_settlement(
    payload: SettlementRequest,
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Request payout of the vendor's unclaimed completed transactions."""
    settlement = retry_transient(
        lambda: settlement_service.request_settlement(
            db,
            vendor_id,
            payload.amount,
            target_date=payload.date,
            period_start=payload.period_start,
            period_end=payload.period_end,
            reason=payload.reason,
        )
    )
    details = settlement.details or {}
    return {
        "settlement_id": settlement.settlement_code,
        "status": settlement.status,
        "amount": settlement.amount,
        "transaction_date": details.get("transaction_date", settlement.settlement_date.isoformat()),
        "requested_date": details.get("requested_date"),
        "is_for_past_date": details.get("is_for_past_date", False),
        "breakdown": details.get("breakdown", {}),
        "message": "Settlement request submitted successfully",
    }


@router.get("/settlement-history", response_model=SettlementHistoryResponse)
def settlement_history(
    page: int = Query(1),
    limit: int = Query(10),
    status_filter: Optional[str] = Query(None, alias="status"),
    vendor_id: int = Depends(get_current_vendor_id),
    db: Session = Depends(get_db)
):
    """Paginated settlement requests, newest first."""
    settlements, total = settlement_service.get_settlement_history(
        db, vendor_id, page=page, limit=limit, status=status_filter
    )
    total_pages = ceil(total / limit) if total else 0
    return {
        "settlements": settlements,
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_records": total,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
