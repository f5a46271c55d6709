"""Read-only projections over the order and expense collections.

All functions are pure: they take the current lists and return plain dicts
(camelCase keys, the shape the dashboard and reports screens consume).
Empty input yields zero counts and empty lists.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from .domain import (
    DeliveryStatus,
    Enquiry,
    EnquiryStatus,
    Expense,
    ExpenseCategory,
    PickupStatus,
    ServiceStatus,
    ServiceType,
    Stage,
)

ZERO = Decimal("0")
PERIODS = ("week", "month", "quarter", "year")


def _money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _percent(part: Decimal | int, whole: Decimal | int) -> Decimal:
    if not whole:
        return ZERO
    return (Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def period_range(period: str, today: date) -> tuple[date, date]:
    if period == "week":
        start = today - timedelta(days=7)
    elif period == "quarter":
        start = date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
    elif period == "year":
        start = date(today.year, 1, 1)
    else:
        start = date(today.year, today.month, 1)
    return start, today


def _in_range(d: Optional[date], start: date, end: date) -> bool:
    return d is not None and start <= d <= end


def completed_in_range(orders: Iterable[Enquiry], start: date, end: date) -> list[Enquiry]:
    """Orders delivered within [start, end]; these carry the revenue."""
    return [
        o for o in orders
        if o.current_stage == Stage.COMPLETED
        and o.delivered_at is not None
        and _in_range(o.delivered_at.date(), start, end)
    ]


def expenses_in_range(expenses: Iterable[Expense], start: date, end: date) -> list[Expense]:
    return [e for e in expenses if _in_range(e.date, start, end)]


# ---------------------------------------------------------------- workflow counts

def enquiry_stats(orders: Sequence[Enquiry]) -> dict:
    by_status = {s.value: 0 for s in EnquiryStatus}
    by_stage = {s.value: 0 for s in Stage}
    for o in orders:
        by_status[o.status.value] += 1
        by_stage[o.current_stage.value] += 1
    return {"total": len(orders), "byStatus": by_status, "byStage": by_stage}


def pickup_stats(orders: Sequence[Enquiry]) -> dict:
    counts = {s.value: 0 for s in PickupStatus}
    for o in orders:
        # received items count until service work is finished
        if o.current_stage == Stage.PICKUP:
            status = o.pickup_details.status if o.pickup_details else PickupStatus.SCHEDULED
        elif o.current_stage == Stage.SERVICE and o.pickup_details:
            status = o.pickup_details.status
        else:
            continue
        counts[status.value] += 1
    return {
        "scheduledCount": counts["scheduled"],
        "assignedCount": counts["assigned"],
        "collectedCount": counts["collected"],
        "receivedCount": counts["received"],
        "total": sum(counts.values()),
    }


def service_stats(orders: Sequence[Enquiry]) -> dict:
    counts = {s: 0 for s in ServiceStatus}
    for o in orders:
        if o.current_stage != Stage.SERVICE or o.service_details is None:
            continue
        for t in o.service_details.tasks:
            counts[t.status] += 1
    return {
        "pendingCount": counts[ServiceStatus.PENDING],
        "inProgressCount": counts[ServiceStatus.IN_PROGRESS],
        "doneCount": counts[ServiceStatus.DONE],
        "totalServices": sum(counts.values()),
    }


def delivery_stats(orders: Sequence[Enquiry]) -> dict:
    counts = {s: 0 for s in DeliveryStatus}
    for o in orders:
        if o.delivery_details is not None:
            counts[o.delivery_details.status] += 1
    return {
        "readyCount": counts[DeliveryStatus.READY],
        "scheduledCount": counts[DeliveryStatus.SCHEDULED],
        "outForDeliveryCount": counts[DeliveryStatus.OUT_FOR_DELIVERY],
        "deliveredCount": counts[DeliveryStatus.DELIVERED],
        "total": sum(counts.values()),
    }


def dashboard_stats(orders: Sequence[Enquiry], expenses: Sequence[Expense], today: date) -> dict:
    month_start, _ = period_range("month", today)
    return {
        "totalEnquiries": len(orders),
        "newEnquiries": sum(1 for o in orders if o.status == EnquiryStatus.NEW),
        "convertedEnquiries": sum(1 for o in orders if o.status == EnquiryStatus.CONVERTED),
        "pendingFollowUp": sum(
            1 for o in orders
            if o.current_stage == Stage.ENQUIRY and o.status in (EnquiryStatus.NEW, EnquiryStatus.CONTACTED)
        ),
        "pendingPickups": sum(1 for o in orders if o.current_stage == Stage.PICKUP),
        "inProgressServices": sum(1 for o in orders if o.current_stage == Stage.SERVICE),
        "completedServices": sum(1 for o in orders if o.current_stage == Stage.COMPLETED),
        "totalRevenue": _money(sum((o.revenue for o in orders if o.current_stage == Stage.COMPLETED), ZERO)),
        "monthlyExpenses": _money(sum((e.amount for e in expenses_in_range(expenses, month_start, today)), ZERO)),
    }


# ---------------------------------------------------------------- expenses

def expense_stats(
    expenses: Sequence[Expense],
    *,
    month: Optional[int] = None,
    year: Optional[int] = None,
    category: Optional[str] = None,
) -> dict:
    rows = [
        e for e in expenses
        if (month is None or e.date.month == month)
        and (year is None or e.date.year == year)
        and (not category or e.category.value == category)
    ]
    total = sum((e.amount for e in rows), ZERO)

    per_cat: dict[ExpenseCategory, list[Decimal]] = defaultdict(list)
    for e in rows:
        per_cat[e.category].append(e.amount)
    breakdown = [
        {
            "category": cat.value,
            "totalAmount": _money(sum(amounts, ZERO)),
            "entryCount": len(amounts),
            "percentage": _percent(sum(amounts, ZERO), total),
        }
        for cat, amounts in per_cat.items()
    ]
    breakdown.sort(key=lambda r: r["totalAmount"], reverse=True)

    return {
        "monthlyTotal": _money(total),
        "filteredEntries": len(rows),
        "averageExpense": _money(total / len(rows)) if rows else _money(ZERO),
        "categoryBreakdown": breakdown,
    }


def expense_breakdown(expenses: Sequence[Expense], start: date, end: date) -> list[dict]:
    rows = sorted(expenses_in_range(expenses, start, end), key=lambda e: (e.date, e.amount), reverse=True)
    return [
        {
            "date": e.date,
            "category": e.category.value,
            "amount": e.amount,
            "title": e.title,
            "description": e.description,
        }
        for e in rows
    ]


# ---------------------------------------------------------------- reports

def report_metrics(orders: Sequence[Enquiry], expenses: Sequence[Expense], start: date, end: date) -> dict:
    done = completed_in_range(orders, start, end)
    revenue = sum((o.revenue for o in done), ZERO)
    spent = sum((e.amount for e in expenses_in_range(expenses, start, end)), ZERO)
    return {
        "totalRevenue": _money(revenue),
        "totalOrders": len(done),
        "activeCustomers": len({o.customer_name.strip().lower() for o in done}),
        "totalExpenditure": _money(spent),
        "netProfit": _money(revenue - spent),
    }


def revenue_chart(orders: Sequence[Enquiry], start: date, end: date) -> list[dict]:
    buckets: dict[tuple[int, int], list[Decimal]] = defaultdict(list)
    for o in completed_in_range(orders, start, end):
        d = o.delivered_at
        buckets[(d.year, d.month)].append(o.revenue)
    return [
        {
            "month": date(y, m, 1).strftime("%b"),
            "year": y,
            "revenue": _money(sum(values, ZERO)),
            "orders": len(values),
        }
        for (y, m), values in sorted(buckets.items())
    ]


def service_distribution(orders: Sequence[Enquiry], start: date, end: date) -> list[dict]:
    counts = {t: 0 for t in ServiceType}
    for o in completed_in_range(orders, start, end):
        if o.service_details:
            for t in o.service_details.tasks:
                counts[t.type] += 1
    total = sum(counts.values())
    rows = [
        {"name": t.value, "count": n, "value": _percent(n, total)}
        for t, n in counts.items() if n
    ]
    rows.sort(key=lambda r: r["count"], reverse=True)
    return rows


def top_customers(orders: Sequence[Enquiry], start: date, end: date, limit: int = 5) -> list[dict]:
    agg: dict[str, dict] = {}
    for o in completed_in_range(orders, start, end):
        row = agg.setdefault(o.customer_name, {"name": o.customer_name, "orders": 0, "revenue": ZERO})
        row["orders"] += 1
        row["revenue"] += o.revenue
    rows = sorted(agg.values(), key=lambda r: r["revenue"], reverse=True)[:limit]
    for r in rows:
        r["revenue"] = _money(r["revenue"])
    return rows


def profit_loss(orders: Sequence[Enquiry], expenses: Sequence[Expense], start: date, end: date) -> list[dict]:
    days: dict[date, dict] = {}
    for o in completed_in_range(orders, start, end):
        d = o.delivered_at.date()
        row = days.setdefault(d, {"date": d, "revenue": ZERO, "expense": ZERO})
        row["revenue"] += o.revenue
    for e in expenses_in_range(expenses, start, end):
        row = days.setdefault(e.date, {"date": e.date, "revenue": ZERO, "expense": ZERO})
        row["expense"] += e.amount
    return [days[d] for d in sorted(days)]


def report_data(orders: Sequence[Enquiry], expenses: Sequence[Expense], start: date, end: date) -> dict:
    return {
        "metrics": report_metrics(orders, expenses, start, end),
        "revenueChartData": revenue_chart(orders, start, end),
        "serviceDistribution": service_distribution(orders, start, end),
        "topCustomers": top_customers(orders, start, end),
        "profitLossData": profit_loss(orders, expenses, start, end),
    }
