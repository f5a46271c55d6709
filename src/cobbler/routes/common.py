from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app, jsonify, request

from ..config import AppConfig
from ..db import Db
from ..errors import ValidationError
from ..repositories.employee_repo import EmployeeRepository
from ..repositories.enquiry_repo import EnquiryRepository
from ..repositories.expense_repo import ExpenseRepository
from ..repositories.settings_repo import SettingsRepository
from ..serializers import to_json
from ..services.enquiry_service import EnquiryService
from ..services.expense_service import ExpenseService
from ..services.report_service import ReportService
from ..services.settings_service import SettingsService


@dataclass
class ApiContext:
    cfg: AppConfig
    db: Db
    enquiries: EnquiryService
    expenses: ExpenseService
    reports: ReportService
    settings: SettingsService


def build_context(cfg: AppConfig, db: Db) -> ApiContext:
    enquiry_repo = EnquiryRepository()
    expense_repo = ExpenseRepository()
    return ApiContext(
        cfg=cfg,
        db=db,
        enquiries=EnquiryService(enquiry_repo=enquiry_repo, rules=cfg.business),
        expenses=ExpenseService(expense_repo=expense_repo, employee_repo=EmployeeRepository()),
        reports=ReportService(enquiry_repo=enquiry_repo, expense_repo=expense_repo),
        settings=SettingsService(settings_repo=SettingsRepository()),
    )


def ctx() -> ApiContext:
    return current_app.extensions["cobbler"]


def ok(data: Any = None, status: int = 200, **extra: Any):
    body = {"success": True, "data": to_json(data)}
    body.update({k: to_json(v) for k, v in extra.items()})
    return jsonify(body), status


def fail(error: str, status: int, **extra: Any):
    body = {"success": False, "error": error}
    body.update(extra)
    return jsonify(body), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        if request.content_length:
            raise ValidationError.single("body", "Request body must be JSON")
        return {}
    if not isinstance(data, dict):
        raise ValidationError.single("body", "Request body must be a JSON object")
    return data
