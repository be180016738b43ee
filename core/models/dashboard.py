"""Dashboard read models."""

from pydantic import BaseModel

from core.models.invoice import InvoiceSummary
from utils.money import Money


class MonthlyRevenue(BaseModel):
    month: str  # YYYY-MM
    revenue: Money


class DashboardStats(BaseModel):
    """Headline numbers for the workspace dashboard."""

    paid_count: int
    pending_count: int   # SENT + VIEWED
    overdue_count: int
    draft_count: int
    invoices_this_week: int
    invoices_this_month: int
    revenue: Money       # totals of PAID invoices
    outstanding: Money
    monthly_revenue: list[MonthlyRevenue]
    recent_invoices: list[InvoiceSummary]
