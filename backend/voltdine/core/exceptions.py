"""
Domain exceptions for the settlement and revenue engine.

Every error carries a machine-readable ``code`` and the HTTP status it maps to.
Business-rule rejections also carry the server-computed ``expected_amount`` so a
client can reconcile its view and resubmit.
"""
from decimal import Decimal
from typing import Any, Dict, Optional


class SettlementError(Exception):
    """Base class for all settlement engine errors."""
    code = "settlement_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(SettlementError):
    """Malformed input; never retried automatically."""
    code = "validation_error"
    status_code = 422


class NotFoundError(ValidationError):
    """Referenced vendor, transaction or settlement does not exist."""
    code = "not_found"
    status_code = 404


class BusinessRuleRejection(SettlementError):
    """A well-formed request the ledger refuses; carries the recomputed amount."""
    code = "business_rule_rejection"
    status_code = 400

    def __init__(self, message: str, expected_amount: Optional[Decimal] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.expected_amount = expected_amount

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["expected_amount"] = (
            str(self.expected_amount) if self.expected_amount is not None else None
        )
        return body


class AmountMismatch(BusinessRuleRejection):
    code = "amount_mismatch"


class NoEligibleTransactions(BusinessRuleRejection):
    code = "no_eligible_transactions"


class OverlappingSettlementExists(BusinessRuleRejection):
    code = "overlapping_settlement_exists"
    status_code = 409


class MissingBankDetails(BusinessRuleRejection):
    code = "missing_bank_details"


class TransientStorageError(SettlementError):
    """Storage hiccup (timeout, dropped connection); safe to retry with backoff."""
    code = "transient_storage_error"
    status_code = 503
    retryable = True


class ConsistencyViolation(SettlementError):
    """A ledger invariant is broken. Settlement creation halts for the vendor."""
    code = "consistency_violation"
    status_code = 409

    def __init__(self, message: str, vendor_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.vendor_id = vendor_id
