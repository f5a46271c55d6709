from __future__ import annotations

from psycopg import Connection

from ..db import row_as_dict, rows_as_dicts
from ..domain import BusinessInfo, NotificationSettings, SecuritySettings, StaffMember, StaffRole

_BUSINESS_COLS = (
    "business_name", "owner_name", "phone", "email", "address", "gst_number",
    "timezone", "currency", "logo", "website", "tagline",
)
_SECURITY_COLS = (
    "two_factor_enabled", "session_timeout", "max_login_attempts",
    "account_lockout_duration", "password_last_changed",
)
_NOTIFICATION_COLS = (
    "email_alerts", "sms_alerts", "low_stock_alerts", "order_updates", "customer_approvals",
)


def _to_staff(row: dict) -> StaffMember:
    return StaffMember(
        id=int(row["id"]),
        name=row["name"],
        role=StaffRole(row["role"]),
        email=row["email"],
        phone=row["phone"],
        status=row["status"],
        created_at=row["created_at"],
    )


class SettingsRepository:
    # business info: a single row, newest wins

    def get_business(self, conn: Connection) -> BusinessInfo | None:
        cur = conn.execute(
            f"SELECT id, {', '.join(_BUSINESS_COLS)}, updated_at FROM business_info ORDER BY id DESC LIMIT 1;"
        )
        row = row_as_dict(cur)
        return BusinessInfo(**row) if row else None

    def save_business(self, conn: Connection, info: BusinessInfo) -> None:
        values = [getattr(info, c) for c in _BUSINESS_COLS]
        existing = self.get_business(conn)
        if existing:
            sets = ", ".join(f"{c} = %s" for c in _BUSINESS_COLS)
            conn.execute(
                f"UPDATE business_info SET {sets}, updated_at = now() WHERE id = %s;",
                (*values, existing.id),
            )
        else:
            conn.execute(
                f"INSERT INTO business_info({', '.join(_BUSINESS_COLS)}) "
                f"VALUES ({', '.join(['%s'] * len(_BUSINESS_COLS))});",
                values,
            )

    # staff

    def list_staff(self, conn: Connection) -> list[StaffMember]:
        cur = conn.execute(
            "SELECT id, name, role, email, phone, status, created_at FROM staff_members ORDER BY name;"
        )
        return [_to_staff(r) for r in rows_as_dicts(cur)]

    def get_staff(self, conn: Connection, staff_id: int) -> StaffMember | None:
        cur = conn.execute(
            "SELECT id, name, role, email, phone, status, created_at FROM staff_members WHERE id = %s;",
            (staff_id,),
        )
        row = row_as_dict(cur)
        return _to_staff(row) if row else None

    def email_taken(self, conn: Connection, email: str, exclude_id: int | None = None) -> bool:
        cur = conn.execute(
            "SELECT 1 FROM staff_members WHERE lower(email) = lower(%s) AND id IS DISTINCT FROM %s;",
            (email, exclude_id),
        )
        return cur.fetchone() is not None

    def create_staff(self, conn: Connection, staff: StaffMember) -> int:
        cur = conn.execute(
            """
            INSERT INTO staff_members(name, role, email, phone, status)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (staff.name, staff.role.value, staff.email, staff.phone, staff.status),
        )
        return int(cur.fetchone()[0])

    def update_staff(self, conn: Connection, staff: StaffMember) -> None:
        conn.execute(
            """
            UPDATE staff_members
            SET name = %s, role = %s, email = %s, phone = %s, status = %s, updated_at = now()
            WHERE id = %s;
            """,
            (staff.name, staff.role.value, staff.email, staff.phone, staff.status, staff.id),
        )

    def delete_staff(self, conn: Connection, staff_id: int) -> bool:
        cur = conn.execute("DELETE FROM staff_members WHERE id = %s;", (staff_id,))
        return cur.rowcount > 0

    # security / notifications: one row each

    def get_security(self, conn: Connection) -> SecuritySettings | None:
        cur = conn.execute(
            f"SELECT id, {', '.join(_SECURITY_COLS)} FROM security_settings ORDER BY id DESC LIMIT 1;"
        )
        row = row_as_dict(cur)
        return SecuritySettings(**row) if row else None

    def save_security(self, conn: Connection, settings: SecuritySettings) -> None:
        self._upsert_single(conn, "security_settings", _SECURITY_COLS, settings)

    def get_notifications(self, conn: Connection) -> NotificationSettings | None:
        cur = conn.execute(
            f"SELECT id, {', '.join(_NOTIFICATION_COLS)} FROM notification_settings ORDER BY id DESC LIMIT 1;"
        )
        row = row_as_dict(cur)
        return NotificationSettings(**row) if row else None

    def save_notifications(self, conn: Connection, settings: NotificationSettings) -> None:
        self._upsert_single(conn, "notification_settings", _NOTIFICATION_COLS, settings)

    def _upsert_single(self, conn: Connection, table: str, cols: tuple[str, ...], obj) -> None:
        values = [getattr(obj, c) for c in cols]
        if obj.id is not None:
            sets = ", ".join(f"{c} = %s" for c in cols)
            conn.execute(f"UPDATE {table} SET {sets}, updated_at = now() WHERE id = %s;", (*values, obj.id))
        else:
            conn.execute(
                f"INSERT INTO {table}({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))});",
                values,
            )
