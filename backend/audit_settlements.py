"""
Audit settlement amounts against the net revenue of the transactions they claim.

Reports every settlement whose stored amount differs from the recomputed
total by more than the configured tolerance. Nothing is rewritten; drift
has to be reconciled by hand.
"""
import sys
import os

# Add the backend directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from decimal import Decimal

from voltdine.core.config import settings
from voltdine.core.utils import to_decimal
from voltdine.db.session import SessionLocal
from voltdine.models import ChargingSession, FoodOrder, Settlement
from voltdine.services.revenue_service import sum_net_revenue


def audit(db, vendor_id=None):
    """Return one entry per settlement whose amount has drifted."""
    query = db.query(Settlement)
    if vendor_id is not None:
        query = query.filter(Settlement.vendor_id == vendor_id)

    drifted = []
    for settlement in query.order_by(Settlement.id).all():
        charging = db.query(ChargingSession).filter(
            ChargingSession.id.in_(settlement.transaction_ids or [])
        ).all()
        food = db.query(FoodOrder).filter(
            FoodOrder.id.in_(settlement.order_ids or [])
        ).all()
        missing = (
            len(settlement.transaction_ids or []) - len(charging)
            + len(settlement.order_ids or []) - len(food)
        )

        recomputed = sum_net_revenue(charging + food)
        stored = to_decimal(settlement.amount)
        if abs(recomputed - stored) > settings.AMOUNT_TOLERANCE or missing:
            drifted.append({
                "settlement_code": settlement.settlement_code,
                "vendor_id": settlement.vendor_id,
                "status": settlement.status.value,
                "stored_amount": stored,
                "recomputed_amount": recomputed,
                "difference": recomputed - stored,
                "missing_transactions": missing,
            })
    return drifted


def main():
    vendor_id = int(sys.argv[1]) if len(sys.argv) > 1 else None
    db = SessionLocal()
    try:
        drifted = audit(db, vendor_id)
        if not drifted:
            print("All settlement amounts match their transactions")
            return 0

        total = sum((row["difference"] for row in drifted), Decimal(0))
        for row in drifted:
            print(
                f"{row['settlement_code']} (vendor {row['vendor_id']}, {row['status']}): "
                f"stored {row['stored_amount']}, recomputed {row['recomputed_amount']}, "
                f"difference {row['difference']}"
                + (f", {row['missing_transactions']} missing" if row["missing_transactions"] else "")
            )
        print(f"\n{len(drifted)} settlement(s) drifted, net difference {total}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
