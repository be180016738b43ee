"""Dashboard statistics over a workspace's invoices."""

from datetime import date
from typing import Any

from clients.postgres_client import PostgresClient
from core.lifecycle import InvoiceStatus
from core.models import DashboardStats, InvoiceSummary, MonthlyRevenue
from utils.money import ZERO
from utils.timezone import first_of_month, start_of_day_utc, start_of_week, today_utc, trailing_months

RECENT_INVOICES = 5


class DashboardService:
    """Read-only aggregates for the dashboard."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def stats(self, workspace_id: int, business_id: int | None = None, today: date | None = None) -> DashboardStats:
        """
        Headline counts, paid revenue, monthly revenue and recent invoices.

        Revenue counts the totals of PAID invoices, bucketed by the month
        they were paid in (UTC).
        """
        today = today or today_utc()
        months = trailing_months(today)

        params: list[Any] = [workspace_id]
        business_clause = ""
        if business_id is not None:
            business_clause = "AND i.business_id = %s"
            params.append(business_id)

        counts = self.postgres.execute_single(
            f"""
            SELECT
                COUNT(*) FILTER (WHERE i.status = 'PAID') AS paid_count,
                COUNT(*) FILTER (WHERE i.status IN ('SENT', 'VIEWED')) AS pending_count,
                COUNT(*) FILTER (WHERE i.status = 'OVERDUE') AS overdue_count,
                COUNT(*) FILTER (WHERE i.status = 'DRAFT') AS draft_count,
                COUNT(*) FILTER (WHERE i.created_at >= %s) AS invoices_this_week,
                COUNT(*) FILTER (WHERE i.created_at >= %s) AS invoices_this_month,
                COALESCE(SUM(i.total) FILTER (WHERE i.status = 'PAID'), 0) AS revenue,
                COALESCE(SUM(i.balance) FILTER (WHERE i.status IN ('SENT', 'VIEWED', 'OVERDUE')), 0) AS outstanding
            FROM invoices i
            WHERE i.workspace_id = %s AND i.deleted_at IS NULL {business_clause}
            """,
            (start_of_day_utc(start_of_week(today)), start_of_day_utc(first_of_month(today)), *params)
        ) or {}

        monthly_rows = self.postgres.execute(
            f"""
            SELECT to_char(date_trunc('month', i.paid_at AT TIME ZONE 'UTC'), 'YYYY-MM') AS month,
                   SUM(i.total) AS revenue
            FROM invoices i
            WHERE i.workspace_id = %s AND i.deleted_at IS NULL {business_clause}
              AND i.status = %s AND i.paid_at >= %s
            GROUP BY 1
            """,
            (*params, InvoiceStatus.PAID.value, start_of_day_utc(months[0]))
        )
        by_month = {row["month"]: row["revenue"] for row in monthly_rows}

        recent = self.postgres.execute(
            f"""
            SELECT i.*, c.name AS client_name, b.name AS business_name
            FROM invoices i
            JOIN clients c ON c.id = i.client_id
            JOIN businesses b ON b.id = i.business_id
            WHERE i.workspace_id = %s AND i.deleted_at IS NULL {business_clause}
            ORDER BY i.created_at DESC, i.id DESC
            LIMIT %s
            """,
            (*params, RECENT_INVOICES)
        )

        return DashboardStats(
            paid_count=counts.get("paid_count", 0),
            pending_count=counts.get("pending_count", 0),
            overdue_count=counts.get("overdue_count", 0),
            draft_count=counts.get("draft_count", 0),
            invoices_this_week=counts.get("invoices_this_week", 0),
            invoices_this_month=counts.get("invoices_this_month", 0),
            revenue=counts.get("revenue", ZERO),
            outstanding=counts.get("outstanding", ZERO),
            monthly_revenue=[
                MonthlyRevenue(
                    month=month.strftime("%Y-%m"),
                    revenue=by_month.get(month.strftime("%Y-%m"), ZERO),
                )
                for month in months
            ],
            recent_invoices=[InvoiceSummary.model_validate(row) for row in recent],
        )
