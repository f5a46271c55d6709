from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from psycopg import Connection

from ..domain import BusinessInfo, NotificationSettings, SecuritySettings, StaffMember, StaffRole
from ..errors import ConflictError, NotFoundError, ValidationError
from ..repositories.settings_repo import SettingsRepository
from ..validators import BUSINESS_FIELDS, STAFF_FIELDS, to_datetime, to_int, validate

logger = logging.getLogger(__name__)

_BUSINESS_KEYS = {
    "businessName": "business_name",
    "ownerName": "owner_name",
    "phone": "phone",
    "email": "email",
    "address": "address",
    "gstNumber": "gst_number",
    "timezone": "timezone",
    "currency": "currency",
    "logo": "logo",
    "website": "website",
    "tagline": "tagline",
}

_SECURITY_INTS = {
    "sessionTimeout": "session_timeout",
    "maxLoginAttempts": "max_login_attempts",
    "accountLockoutDuration": "account_lockout_duration",
}

_NOTIFICATION_KEYS = {
    "emailAlerts": "email_alerts",
    "smsAlerts": "sms_alerts",
    "lowStockAlerts": "low_stock_alerts",
    "orderUpdates": "order_updates",
    "customerApprovals": "customer_approvals",
}

STAFF_STATUSES = ("active", "inactive")


class SettingsService:
    def __init__(self, *, settings_repo: SettingsRepository) -> None:
        self.settings_repo = settings_repo

    # business

    def get_business(self, conn: Connection) -> BusinessInfo | None:
        return self.settings_repo.get_business(conn)

    def save_business(self, conn: Connection, payload: Mapping[str, Any]) -> BusinessInfo:
        errors = validate(payload, BUSINESS_FIELDS)
        if errors:
            raise ValidationError(errors)
        fields = {attr: payload.get(key) for key, attr in _BUSINESS_KEYS.items() if payload.get(key) is not None}
        info = BusinessInfo(**{k: v.strip() if isinstance(v, str) else v for k, v in fields.items()})
        self.settings_repo.save_business(conn, info)
        logger.info("Business information saved for %s", info.business_name)
        return self.settings_repo.get_business(conn)

    # staff

    def list_staff(self, conn: Connection) -> list[StaffMember]:
        return self.settings_repo.list_staff(conn)

    def get_staff(self, conn: Connection, staff_id: int) -> StaffMember:
        staff = self.settings_repo.get_staff(conn, staff_id)
        if staff is None:
            raise NotFoundError("Staff member", staff_id)
        return staff

    def _check_status(self, payload: Mapping[str, Any], errors: dict[str, str]) -> None:
        if "status" in payload and payload["status"] not in STAFF_STATUSES:
            errors["status"] = "Status must be 'active' or 'inactive'"

    def create_staff(self, conn: Connection, payload: Mapping[str, Any]) -> StaffMember:
        errors = validate(payload, STAFF_FIELDS)
        self._check_status(payload, errors)
        if errors:
            raise ValidationError(errors)
        email = str(payload["email"]).strip()
        if self.settings_repo.email_taken(conn, email):
            raise ConflictError(f"A staff member with email {email} already exists")

        staff = StaffMember(
            id=None,
            name=str(payload["name"]).strip(),
            role=StaffRole(payload["role"]),
            email=email,
            phone=str(payload["phone"]).strip(),
            status=payload.get("status") or "active",
        )
        staff_id = self.settings_repo.create_staff(conn, staff)
        logger.info("Staff member #%s created (%s)", staff_id, staff.role.value)
        return self.get_staff(conn, staff_id)

    def update_staff(self, conn: Connection, staff_id: int, payload: Mapping[str, Any]) -> StaffMember:
        current = self.get_staff(conn, staff_id)
        errors = validate(payload, STAFF_FIELDS, partial=True)
        self._check_status(payload, errors)
        if errors:
            raise ValidationError(errors)
        email = str(payload.get("email", current.email)).strip()
        if email.lower() != current.email.lower() and self.settings_repo.email_taken(conn, email, staff_id):
            raise ConflictError(f"A staff member with email {email} already exists")

        updated = replace(
            current,
            name=str(payload.get("name", current.name)).strip(),
            role=StaffRole(payload["role"]) if "role" in payload else current.role,
            email=email,
            phone=str(payload.get("phone", current.phone)).strip(),
            status=payload.get("status", current.status),
        )
        self.settings_repo.update_staff(conn, updated)
        logger.info("Staff member #%s updated", staff_id)
        return updated

    def delete_staff(self, conn: Connection, staff_id: int) -> None:
        if not self.settings_repo.delete_staff(conn, staff_id):
            raise NotFoundError("Staff member", staff_id)
        logger.info("Staff member #%s deleted", staff_id)

    # security

    def get_security(self, conn: Connection) -> SecuritySettings:
        return self.settings_repo.get_security(conn) or SecuritySettings()

    def save_security(self, conn: Connection, payload: Mapping[str, Any]) -> SecuritySettings:
        current = self.get_security(conn)
        changes: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for key, attr in _SECURITY_INTS.items():
            if key in payload:
                n = to_int(payload[key])
                if n is None or n < 1:
                    errors[key] = f"{key} must be a positive whole number"
                else:
                    changes[attr] = n
        if "twoFactorEnabled" in payload:
            changes["two_factor_enabled"] = bool(payload["twoFactorEnabled"])
        if "passwordLastChanged" in payload:
            changes["password_last_changed"] = to_datetime(payload["passwordLastChanged"])
        if errors:
            raise ValidationError(errors)
        self.settings_repo.save_security(conn, replace(current, **changes))
        logger.info("Security settings saved (%s)", ", ".join(sorted(changes)) or "no changes")
        return self.get_security(conn)

    # notifications

    def get_notifications(self, conn: Connection) -> NotificationSettings:
        return self.settings_repo.get_notifications(conn) or NotificationSettings()

    def save_notifications(self, conn: Connection, payload: Mapping[str, Any]) -> NotificationSettings:
        current = self.get_notifications(conn)
        changes = {attr: bool(payload[key]) for key, attr in _NOTIFICATION_KEYS.items() if key in payload}
        self.settings_repo.save_notifications(conn, replace(current, **changes))
        logger.info("Notification settings saved")
        return self.get_notifications(conn)
