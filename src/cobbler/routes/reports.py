from __future__ import annotations

from flask import Blueprint, request

from ..services.report_service import ReportService
from .common import ctx, ok

reports_bp = Blueprint("reports", __name__)


def _period_report(method_name: str):
    c = ctx()
    period, start, end = c.reports.resolve_period(request.args.get("period"))
    with c.db.session() as conn:
        data = getattr(c.reports, method_name)(conn, start, end)
    return ok(data, period=period, dateRange={"startDate": start, "endDate": end})


@reports_bp.route("/reports/data", methods=["GET"])
def report_data():
    return _period_report("data")


@reports_bp.route("/reports/metrics", methods=["GET"])
def report_metrics():
    return _period_report("metrics")


@reports_bp.route("/reports/revenue-chart", methods=["GET"])
def revenue_chart():
    return _period_report("revenue_chart")


@reports_bp.route("/reports/export-data", methods=["GET"])
def export_data():
    return _period_report("export_data")


@reports_bp.route("/reports/custom", methods=["GET"])
def custom_report():
    c = ctx()
    start, end = ReportService.parse_custom_range(request.args.get("startDate"), request.args.get("endDate"))
    with c.db.session() as conn:
        data = c.reports.data(conn, start, end)
    return ok(data, period="custom", dateRange={"startDate": start, "endDate": end})
