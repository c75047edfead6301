"""
Pydantic schemas for vendor dashboard analytics.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from voltdine.schemas.settlement import BalanceResponse


class DailyStats(BaseModel):
    """Revenue for the selected period, split by source and settlement state."""
    total_to_be_received: Decimal
    charging_station_revenue: Decimal
    restaurant_revenue: Decimal
    payment_settled: Decimal
    in_settlement_process: Decimal
    pending_settlement: Decimal
    needs_settlement: bool


class SettlementSummary(BaseModel):
    """Active settlement overlapping the selected period."""
    id: str
    requested_at: datetime
    status: str
    amount: Decimal
    request_type: str


class SettlementInfo(BaseModel):
    has_active_settlement: bool
    settlement_requests: List[SettlementSummary]


class TimelineEntry(BaseModel):
    """One day of the rolling revenue timeline."""
    year: int
    month: int
    day: int
    date: str
    revenue: Decimal
    actual_revenue: Decimal
    estimated_revenue: Decimal
    total_bookings: int


class TransactionRow(BaseModel):
    id: int
    kind: str
    reference: str
    customer_name: str
    location_name: str
    completed_at: Optional[datetime] = None
    status: str
    settlement_status: str
    amount: Decimal  # Net revenue, may be negative
    description: str


class TransactionAnalyticsResponse(BaseModel):
    """Schema for the transaction analytics dashboard."""
    selected_date: str
    period_start: datetime
    period_end: datetime
    daily_stats: DailyStats
    overall_stats: BalanceResponse
    settlement_info: SettlementInfo
    timeline: List[TimelineEntry]
    transactions: List[TransactionRow]


class DashboardStats(BaseModel):
    total_bookings: int
    completed_bookings: int
    confirmed_bookings: int
    pending_bookings: int
    monthly_revenue: Decimal
    total_revenue: Decimal
    confirmed_revenue: Decimal
    pending_revenue: Decimal
    estimated_revenue: Decimal
    conversion_rate: float


class VendorInfo(BaseModel):
    name: str
    business_name: Optional[str] = None


class DashboardStatsResponse(BaseModel):
    """Schema for headline dashboard stats."""
    stats: DashboardStats
    daily_stats: List[TimelineEntry]
    vendor: VendorInfo
