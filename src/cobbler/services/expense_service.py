from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Mapping

from psycopg import Connection

from .. import stats
from ..domain import Employee, Expense, ExpenseCategory
from ..errors import NotFoundError, ValidationError
from ..repositories.employee_repo import EmployeeRepository
from ..repositories.expense_repo import ExpenseRepository
from ..validators import EMPLOYEE_FIELDS, EXPENSE_FIELDS, to_bool, to_date, to_decimal, to_int, validate

logger = logging.getLogger(__name__)


def filter_expenses(
    expenses: list[Expense],
    *,
    month: int | None = None,
    year: int | None = None,
    category: str | None = None,
    search: str | None = None,
) -> list[Expense]:
    needle = (search or "").strip().lower()
    return [
        e for e in expenses
        if (month is None or e.date.month == month)
        and (year is None or e.date.year == year)
        and (not category or e.category.value == category)
        and (not needle or needle in e.title.lower() or needle in (e.description or "").lower())
    ]


def salary_expense_for(employee: Employee) -> Expense:
    return Expense(
        id=None,
        title=f"Salary - {employee.name} ({employee.role})",
        amount=employee.monthly_salary,
        category=ExpenseCategory.STAFF_SALARIES,
        date=employee.date_added,
        description=f"Monthly salary payment for {employee.name}",
        notes=f"Role: {employee.role}",
        employee_id=employee.id,
    )


class ExpenseService:
    def __init__(self, *, expense_repo: ExpenseRepository, employee_repo: EmployeeRepository) -> None:
        self.expense_repo = expense_repo
        self.employee_repo = employee_repo

    # expenses

    def list(
        self,
        conn: Connection,
        *,
        month: Any = None,
        year: Any = None,
        category: str | None = None,
        search: str | None = None,
        page: Any = 1,
        limit: Any = 50,
    ) -> dict:
        page_n = max(to_int(page) or 1, 1)
        limit_n = min(max(to_int(limit) or 50, 1), 500)
        rows = filter_expenses(
            self.expense_repo.list(conn),
            month=to_int(month),
            year=to_int(year),
            category=category,
            search=search,
        )
        start = (page_n - 1) * limit_n
        return {
            "data": rows[start:start + limit_n],
            "total": len(rows),
            "page": page_n,
            "limit": limit_n,
            "totalPages": math.ceil(len(rows) / limit_n) if rows else 0,
        }

    def get(self, conn: Connection, expense_id: int) -> Expense:
        expense = self.expense_repo.get(conn, expense_id)
        if expense is None:
            raise NotFoundError("Expense", expense_id)
        return expense

    def _check_employee(self, conn: Connection, payload: Mapping[str, Any], errors: dict[str, str]) -> int | None:
        raw = payload.get("employeeId")
        if raw in (None, ""):
            return None
        employee_id = to_int(raw)
        if employee_id is None or self.employee_repo.get(conn, employee_id) is None:
            errors["employeeId"] = f"Unknown employee '{raw}'"
        return employee_id

    def create(self, conn: Connection, payload: Mapping[str, Any], *, bill_url: str | None = None) -> Expense:
        errors = validate(payload, EXPENSE_FIELDS)
        employee_id = self._check_employee(conn, payload, errors)
        if errors:
            raise ValidationError(errors)

        expense = Expense(
            id=None,
            title=str(payload["title"]).strip(),
            amount=to_decimal(payload["amount"]),
            category=ExpenseCategory(payload["category"]),
            date=to_date(payload["date"]),
            description=str(payload.get("description") or "").strip(),
            notes=payload.get("notes") or None,
            bill_url=bill_url,
            employee_id=employee_id,
        )
        expense_id = self.expense_repo.create(conn, expense)
        logger.info("Expense #%s recorded: %s %s", expense_id, expense.category.value, expense.amount)
        return self.get(conn, expense_id)

    def update(
        self, conn: Connection, expense_id: int, payload: Mapping[str, Any], *, bill_url: str | None = None
    ) -> Expense:
        current = self.get(conn, expense_id)
        errors = validate(payload, EXPENSE_FIELDS, partial=True)
        employee_id = self._check_employee(conn, payload, errors) if "employeeId" in payload else current.employee_id
        if errors:
            raise ValidationError(errors)

        updated = replace(
            current,
            title=str(payload.get("title", current.title)).strip(),
            amount=to_decimal(payload["amount"]) if "amount" in payload else current.amount,
            category=ExpenseCategory(payload["category"]) if "category" in payload else current.category,
            date=to_date(payload["date"]) if "date" in payload else current.date,
            description=str(payload.get("description", current.description) or "").strip(),
            notes=payload.get("notes", current.notes) or None,
            bill_url=bill_url or current.bill_url,
            employee_id=employee_id,
        )
        self.expense_repo.update(conn, updated)
        logger.info("Expense #%s updated", expense_id)
        return self.get(conn, expense_id)

    def delete(self, conn: Connection, expense_id: int) -> None:
        if not self.expense_repo.delete(conn, expense_id):
            raise NotFoundError("Expense", expense_id)
        logger.info("Expense #%s deleted", expense_id)

    def stats(self, conn: Connection, *, month: Any = None, year: Any = None, category: str | None = None) -> dict:
        return stats.expense_stats(
            self.expense_repo.list(conn),
            month=to_int(month),
            year=to_int(year),
            category=category,
        )

    # employees

    def list_employees(self, conn: Connection, *, active_only: bool = False) -> list[Employee]:
        return self.employee_repo.list(conn, active_only=active_only)

    def get_employee(self, conn: Connection, employee_id: int) -> Employee:
        employee = self.employee_repo.get(conn, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def create_employee(self, conn: Connection, payload: Mapping[str, Any]) -> tuple[Employee, Expense]:
        """Adds the employee and records their first monthly salary as a
        "Staff Salaries" expense in the same transaction."""
        errors = validate(payload, EMPLOYEE_FIELDS)
        if errors:
            raise ValidationError(errors)

        employee = Employee(
            id=None,
            name=str(payload["name"]).strip(),
            role=str(payload["role"]).strip(),
            monthly_salary=to_decimal(payload["monthlySalary"]),
            date_added=to_date(payload["dateAdded"]),
        )
        employee_id = self.employee_repo.create(conn, employee)
        employee = replace(employee, id=employee_id)

        expense_id = self.expense_repo.create(conn, salary_expense_for(employee))
        logger.info("Employee #%s added with salary expense #%s", employee_id, expense_id)
        return self.get_employee(conn, employee_id), self.get(conn, expense_id)

    def update_employee(self, conn: Connection, employee_id: int, payload: Mapping[str, Any]) -> Employee:
        current = self.get_employee(conn, employee_id)
        errors = validate(payload, EMPLOYEE_FIELDS, partial=True)
        active = to_bool(payload.get("isActive", current.is_active))
        if active is None:
            errors["isActive"] = "isActive must be true or false"
        if errors:
            raise ValidationError(errors)
        updated = replace(
            current,
            name=str(payload.get("name", current.name)).strip(),
            role=str(payload.get("role", current.role)).strip(),
            monthly_salary=to_decimal(payload["monthlySalary"]) if "monthlySalary" in payload else current.monthly_salary,
            date_added=to_date(payload["dateAdded"]) if "dateAdded" in payload else current.date_added,
            is_active=active,
        )
        self.employee_repo.update(conn, updated)
        logger.info("Employee #%s updated", employee_id)
        return updated

    def delete_employee(self, conn: Connection, employee_id: int) -> None:
        if not self.employee_repo.delete(conn, employee_id):
            raise NotFoundError("Employee", employee_id)
        logger.info("Employee #%s deleted", employee_id)
