"""
Read-time resolution of a transaction's settlement status.

The raw settlement_status column is written once, when a settlement claims the
transaction. Later settlement transitions (completed, rejected) are not fanned
out to every transaction row; the true state is derived here instead.
"""
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from voltdine.models.settlement import Settlement, SettlementStatus
from voltdine.models.transaction import TransactionKind, TransactionSettlementStatus
from voltdine.services.revenue_service import net_revenue


def referenced_ids(settlement: Settlement, kind: TransactionKind) -> set:
    """Ids of the given kind a settlement claims."""
    if kind == TransactionKind.CHARGING:
        return set(settlement.transaction_ids or [])
    return set(settlement.order_ids or [])


def is_referenced_by(settlement: Settlement, transaction) -> bool:
    return transaction.id in referenced_ids(settlement, transaction.kind)


def resolve_settlement_status(
    transaction,
    active_settlements: Iterable[Settlement],
    settlements_by_id: Optional[Mapping[int, Settlement]] = None,
) -> TransactionSettlementStatus:
    """
    Derive the displayable settlement status of a transaction.

    active_settlements are the vendor's pending/processing settlements.
    settlements_by_id optionally maps settlement id to settlement so a claim
    by a settlement that is no longer active resolves to settled (completed)
    or back to pending (rejected). Unknown references resolve to settled.
    """
    raw = transaction.settlement_status
    if raw is None or raw == TransactionSettlementStatus.PENDING:
        return TransactionSettlementStatus.PENDING
    if raw == TransactionSettlementStatus.SETTLED:
        return TransactionSettlementStatus.SETTLED

    if any(is_referenced_by(s, transaction) for s in active_settlements):
        return TransactionSettlementStatus.INCLUDED_IN_SETTLEMENT

    claimed_by = None
    if settlements_by_id is not None and transaction.settlement_id is not None:
        claimed_by = settlements_by_id.get(transaction.settlement_id)
    if claimed_by is not None and claimed_by.status == SettlementStatus.REJECTED:
        return TransactionSettlementStatus.PENDING
    return TransactionSettlementStatus.SETTLED


def split_by_status(
    transactions: Iterable,
    active_settlements: Iterable[Settlement],
    settlements_by_id: Optional[Mapping[int, Settlement]] = None,
) -> Dict[str, Decimal]:
    """Three-way split of net revenue by resolved settlement status."""
    active = list(active_settlements)
    split = {
        "settled": Decimal(0),
        "in_settlement_process": Decimal(0),
        "pending_settlement": Decimal(0),
    }
    for transaction in transactions:
        status = resolve_settlement_status(transaction, active, settlements_by_id)
        amount = net_revenue(transaction)
        if status == TransactionSettlementStatus.SETTLED:
            split["settled"] += amount
        elif status == TransactionSettlementStatus.INCLUDED_IN_SETTLEMENT:
            split["in_settlement_process"] += amount
        else:
            split["pending_settlement"] += amount
    return split
