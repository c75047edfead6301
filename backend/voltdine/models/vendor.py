"""
Vendor model: the station/restaurant operator who receives payouts.
"""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from voltdine.db.base import BaseModel


class Vendor(BaseModel):
    """Vendor model with payout account details."""
    __tablename__ = "vendors"

    name = Column(String(100), nullable=False)
    business_name = Column(String(200), nullable=True)
    reporting_timezone = Column(String(64), nullable=True)  # IANA name, falls back to settings

    # Payout account
    account_number = Column(String(34), nullable=True)
    account_holder_name = Column(String(100), nullable=True)
    bank_name = Column(String(100), nullable=True)
    ifsc_code = Column(String(20), nullable=True)

    # Set when a ledger inconsistency is detected; cleared only by manual reconciliation
    settlement_locked = Column(Boolean, default=False, nullable=False)
    settlement_lock_reason = Column(String(500), nullable=True)

    # Relationships
    charging_sessions = relationship("ChargingSession", back_populates="vendor")
    food_orders = relationship("FoodOrder", back_populates="vendor")
    settlements = relationship("Settlement", back_populates="vendor")

    @property
    def has_payout_account(self) -> bool:
        return bool(self.account_number and self.account_number.strip())

    def bank_details_snapshot(self) -> dict:
        """Copy of the payout account taken at settlement request time."""
        return {
            "account_number": self.account_number,
            "account_holder_name": self.account_holder_name,
            "bank_name": self.bank_name,
            "ifsc_code": self.ifsc_code,
        }
