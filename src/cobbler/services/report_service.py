from __future__ import annotations

from datetime import date, datetime
from typing import Callable

from psycopg import Connection

from .. import stats
from ..errors import ValidationError
from ..repositories.enquiry_repo import EnquiryRepository
from ..repositories.expense_repo import ExpenseRepository
from ..validators import to_date


class ReportService:
    def __init__(
        self,
        *,
        enquiry_repo: EnquiryRepository,
        expense_repo: ExpenseRepository,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.enquiry_repo = enquiry_repo
        self.expense_repo = expense_repo
        self.clock = clock

    def resolve_period(self, period: str | None) -> tuple[str, date, date]:
        period = period if period in stats.PERIODS else "month"
        start, end = stats.period_range(period, self.clock().date())
        return period, start, end

    def _collections(self, conn: Connection):
        return self.enquiry_repo.list_all(conn), self.expense_repo.list(conn)

    def data(self, conn: Connection, start: date, end: date) -> dict:
        orders, expenses = self._collections(conn)
        return stats.report_data(orders, expenses, start, end)

    def metrics(self, conn: Connection, start: date, end: date) -> dict:
        orders, expenses = self._collections(conn)
        return stats.report_metrics(orders, expenses, start, end)

    def revenue_chart(self, conn: Connection, start: date, end: date) -> list[dict]:
        return stats.revenue_chart(self.enquiry_repo.list_all(conn), start, end)

    def export_data(self, conn: Connection, start: date, end: date) -> dict:
        orders, expenses = self._collections(conn)
        data = stats.report_data(orders, expenses, start, end)
        data["expenseBreakdown"] = stats.expense_breakdown(expenses, start, end)
        return data

    def dashboard(self, conn: Connection) -> dict:
        orders, expenses = self._collections(conn)
        return stats.dashboard_stats(orders, expenses, self.clock().date())

    @staticmethod
    def parse_custom_range(start_raw: str | None, end_raw: str | None) -> tuple[date, date]:
        errors = {}
        start, end = to_date(start_raw), to_date(end_raw)
        if start is None:
            errors["startDate"] = "startDate is required (YYYY-MM-DD)"
        if end is None:
            errors["endDate"] = "endDate is required (YYYY-MM-DD)"
        if start and end and start > end:
            errors["endDate"] = "endDate must not be before startDate"
        if errors:
            raise ValidationError(errors)
        return start, end
