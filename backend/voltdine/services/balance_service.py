"""
Balance service for all-time vendor earnings and withdrawals.
"""
from decimal import Decimal
from typing import Dict

from sqlalchemy.orm import Session

from voltdine.core.utils import storage_errors, to_decimal
from voltdine.models.transaction import TransactionKind
from voltdine.services.ledger_queries import list_completed_settlements, list_completed_transactions
from voltdine.services.revenue_service import sum_net_revenue


def get_balance(db: Session, vendor_id: int) -> Dict[str, Decimal]:
    """
    All-time balance for a vendor.

    pending_withdrawal is derived from the other two figures, so
    total_balance == total_withdrawn + pending_withdrawal always holds.
    """
    with storage_errors("balance lookup"):
        charging = list_completed_transactions(db, vendor_id, TransactionKind.CHARGING)
        food = list_completed_transactions(db, vendor_id, TransactionKind.FOOD)
        completed_settlements = list_completed_settlements(db, vendor_id)

    charging_balance = sum_net_revenue(charging)
    restaurant_balance = sum_net_revenue(food)
    total_balance = charging_balance + restaurant_balance
    total_withdrawn = sum((to_decimal(s.amount) for s in completed_settlements), Decimal(0))

    return {
        "total_balance": total_balance,
        "total_charging_station_balance": charging_balance,
        "total_restaurant_balance": restaurant_balance,
        "total_withdrawn": total_withdrawn,
        "pending_withdrawal": total_balance - total_withdrawn,
    }
