from __future__ import annotations

from psycopg import Connection

from ..db import row_as_dict, rows_as_dicts
from ..domain import Employee


def _to_employee(row: dict) -> Employee:
    return Employee(
        id=int(row["id"]),
        name=row["name"],
        role=row["role"],
        monthly_salary=row["monthly_salary"],
        date_added=row["date_added"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


class EmployeeRepository:
    def create(self, conn: Connection, employee: Employee) -> int:
        cur = conn.execute(
            """
            INSERT INTO employees(name, role, monthly_salary, date_added, is_active)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (employee.name, employee.role, employee.monthly_salary, employee.date_added, employee.is_active),
        )
        return int(cur.fetchone()[0])

    def get(self, conn: Connection, employee_id: int) -> Employee | None:
        cur = conn.execute(
            "SELECT id, name, role, monthly_salary, date_added, is_active, created_at FROM employees WHERE id = %s;",
            (employee_id,),
        )
        row = row_as_dict(cur)
        return _to_employee(row) if row else None

    def list(self, conn: Connection, *, active_only: bool = False) -> list[Employee]:
        where = "WHERE is_active" if active_only else ""
        cur = conn.execute(
            f"""
            SELECT id, name, role, monthly_salary, date_added, is_active, created_at
            FROM employees
            {where}
            ORDER BY name;
            """
        )
        return [_to_employee(r) for r in rows_as_dicts(cur)]

    def update(self, conn: Connection, employee: Employee) -> None:
        conn.execute(
            """
            UPDATE employees
            SET name = %s, role = %s, monthly_salary = %s, date_added = %s, is_active = %s, updated_at = now()
            WHERE id = %s;
            """,
            (
                employee.name,
                employee.role,
                employee.monthly_salary,
                employee.date_added,
                employee.is_active,
                employee.id,
            ),
        )

    def delete(self, conn: Connection, employee_id: int) -> bool:
        cur = conn.execute("DELETE FROM employees WHERE id = %s;", (employee_id,))
        return cur.rowcount > 0
