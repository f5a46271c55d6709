from __future__ import annotations

from psycopg import Connection

from ..db import row_as_dict, rows_as_dicts
from ..domain import Expense, ExpenseCategory

_SELECT = """
    SELECT x.id, x.title, x.amount, x.category, x.date, x.description, x.notes,
           x.bill_url, x.employee_id, e.name AS employee_name, x.created_at
    FROM expenses x
    LEFT JOIN employees e ON e.id = x.employee_id
"""


def _to_expense(row: dict) -> Expense:
    return Expense(
        id=int(row["id"]),
        title=row["title"],
        amount=row["amount"],
        category=ExpenseCategory(row["category"]),
        date=row["date"],
        description=row["description"] or "",
        notes=row["notes"],
        bill_url=row["bill_url"],
        employee_id=row["employee_id"],
        employee_name=row["employee_name"],
        created_at=row["created_at"],
    )


class ExpenseRepository:
    def create(self, conn: Connection, expense: Expense) -> int:
        cur = conn.execute(
            """
            INSERT INTO expenses(title, amount, category, date, description, notes, bill_url, employee_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (
                expense.title,
                expense.amount,
                expense.category.value,
                expense.date,
                expense.description,
                expense.notes,
                expense.bill_url,
                expense.employee_id,
            ),
        )
        return int(cur.fetchone()[0])

    def get(self, conn: Connection, expense_id: int) -> Expense | None:
        row = row_as_dict(conn.execute(_SELECT + " WHERE x.id = %s;", (expense_id,)))
        return _to_expense(row) if row else None

    def list(self, conn: Connection, limit: int = 100_000) -> list[Expense]:
        cur = conn.execute(_SELECT + " ORDER BY x.date DESC, x.id DESC LIMIT %s;", (limit,))
        return [_to_expense(r) for r in rows_as_dicts(cur)]

    def update(self, conn: Connection, expense: Expense) -> None:
        conn.execute(
            """
            UPDATE expenses
            SET title = %s, amount = %s, category = %s, date = %s, description = %s,
                notes = %s, bill_url = %s, employee_id = %s, updated_at = now()
            WHERE id = %s;
            """,
            (
                expense.title,
                expense.amount,
                expense.category.value,
                expense.date,
                expense.description,
                expense.notes,
                expense.bill_url,
                expense.employee_id,
                expense.id,
            ),
        )

    def delete(self, conn: Connection, expense_id: int) -> bool:
        cur = conn.execute("DELETE FROM expenses WHERE id = %s;", (expense_id,))
        return cur.rowcount > 0
