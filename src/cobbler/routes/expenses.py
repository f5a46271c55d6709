from __future__ import annotations

import logging
import os
import secrets
from contextlib import contextmanager
from datetime import datetime

from flask import Blueprint, request, send_from_directory
from werkzeug.utils import secure_filename

from ..errors import ValidationError
from .common import ctx, json_body, ok

logger = logging.getLogger(__name__)

expenses_bp = Blueprint("expenses", __name__)

BILL_URL_PREFIX = "/api/expense/bills/"
ALLOWED_BILL_EXTENSIONS = {".pdf", ".png", ".jpg", ".jpeg", ".webp"}


def _upload_dir() -> str:
    path = os.path.abspath(ctx().cfg.upload_dir)
    os.makedirs(path, exist_ok=True)
    return path


def _save_bill() -> str | None:
    file = request.files.get("bill") or request.files.get("billFile")
    if not file or file.filename == "":
        return None
    name = secure_filename(file.filename)
    ext = os.path.splitext(name)[1].lower()
    if ext not in ALLOWED_BILL_EXTENSIONS:
        raise ValidationError.single("bill", f"Bill must be one of: {', '.join(sorted(ALLOWED_BILL_EXTENSIONS))}")
    # random part keeps the link unguessable
    stored = f"{datetime.now():%Y%m%d%H%M%S}_{secrets.token_urlsafe(16)}_{name}"
    file.save(os.path.join(_upload_dir(), stored))
    return f"{BILL_URL_PREFIX}{stored}"


@contextmanager
def _bill_upload():
    """Save the attached bill and yield its URL; the file is removed again if
    the request fails afterwards."""
    bill_url = _save_bill()
    try:
        yield bill_url
    except Exception:
        if bill_url:
            path = os.path.join(_upload_dir(), bill_url[len(BILL_URL_PREFIX):])
            if os.path.exists(path):
                os.remove(path)
                logger.info("Removed bill %s of a failed expense request", path)
        raise


def _payload() -> dict:
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict()
    return json_body()


@expenses_bp.route("/expense", methods=["GET"])
def list_expenses():
    c = ctx()
    a = request.args
    with c.db.session() as conn:
        page = c.expenses.list(
            conn,
            month=a.get("month") or None,
            year=a.get("year") or None,
            category=a.get("category") or None,
            search=a.get("search") or None,
            page=a.get("page", 1),
            limit=a.get("limit", 50),
        )
    return ok(page)


@expenses_bp.route("/expense/stats", methods=["GET"])
def expense_stats():
    c = ctx()
    a = request.args
    with c.db.session() as conn:
        return ok(
            c.expenses.stats(
                conn,
                month=a.get("month") or None,
                year=a.get("year") or None,
                category=a.get("category") or None,
            )
        )


@expenses_bp.route("/expense/<int:expense_id>", methods=["GET"])
def get_expense(expense_id: int):
    c = ctx()
    with c.db.session() as conn:
        return ok(c.expenses.get(conn, expense_id))


@expenses_bp.route("/expense", methods=["POST"])
def create_expense():
    c = ctx()
    payload = _payload()
    with _bill_upload() as bill_url, c.db.transaction() as conn:
        expense = c.expenses.create(conn, payload, bill_url=bill_url)
    return ok(expense, 201, message="Expense created")


@expenses_bp.route("/expense/<int:expense_id>", methods=["PUT"])
def update_expense(expense_id: int):
    c = ctx()
    payload = _payload()
    with _bill_upload() as bill_url, c.db.transaction() as conn:
        expense = c.expenses.update(conn, expense_id, payload, bill_url=bill_url)
    return ok(expense, message="Expense updated")


@expenses_bp.route("/expense/<int:expense_id>", methods=["DELETE"])
def delete_expense(expense_id: int):
    c = ctx()
    with c.db.transaction() as conn:
        c.expenses.delete(conn, expense_id)
    return ok(None, message=f"Expense {expense_id} deleted")


@expenses_bp.route("/expense/bills/<path:name>", methods=["GET"])
def get_bill(name: str):
    return send_from_directory(_upload_dir(), name)


@expenses_bp.route("/expense/employees", methods=["GET"])
def list_employees():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.expenses.list_employees(conn, active_only=request.args.get("active") == "true"))


@expenses_bp.route("/expense/employees/all", methods=["GET"])
def list_all_employees():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.expenses.list_employees(conn))


@expenses_bp.route("/expense/employees/<int:employee_id>", methods=["GET"])
def get_employee(employee_id: int):
    c = ctx()
    with c.db.session() as conn:
        return ok(c.expenses.get_employee(conn, employee_id))


@expenses_bp.route("/expense/employees", methods=["POST"])
def create_employee():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        employee, salary = c.expenses.create_employee(conn, payload)
    return ok(employee, 201, salaryExpense=salary, message="Employee added and salary expense recorded")


@expenses_bp.route("/expense/employees/<int:employee_id>", methods=["PUT"])
def update_employee(employee_id: int):
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        employee = c.expenses.update_employee(conn, employee_id, payload)
    return ok(employee, message="Employee updated")


@expenses_bp.route("/expense/employees/<int:employee_id>", methods=["DELETE"])
def delete_employee(employee_id: int):
    c = ctx()
    with c.db.transaction() as conn:
        c.expenses.delete_employee(conn, employee_id)
    return ok(None, message=f"Employee {employee_id} deleted")
