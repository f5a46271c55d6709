"""Field validators shared by the create, edit and workflow paths.

Every `check_*` function returns an error message, or None when the value
is acceptable. `validate()` runs the checks registered for the fields present
in a payload and collects the messages by field name.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Optional

from .domain import ExpenseCategory, InquiryType, ProductType, StaffRole

PHONE_RE = re.compile(r"^([6-9]\d{9}|\+91[6-9]\d{9})$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clean_phone(value: str) -> str:
    return re.sub(r"[^\d+]", "", value or "")


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _naive_local(value: datetime) -> datetime:
    # stored timestamps are naive local time, like datetime.now()
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return _naive_local(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        # front end sends ISO strings with a trailing Z
        return _naive_local(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def check_name(value: Any) -> Optional[str]:
    if _blank(value):
        return "Name is required"
    if len(str(value).strip()) < 2:
        return "Name must be at least 2 characters long"
    return None


def check_phone(value: Any) -> Optional[str]:
    if _blank(value):
        return "Phone number is required"
    if not PHONE_RE.match(clean_phone(str(value))):
        return "Please enter a valid Indian phone number (10 digits, or +91 followed by 10 digits)"
    return None


def check_email(value: Any) -> Optional[str]:
    if _blank(value):
        return "Email is required"
    if not EMAIL_RE.match(str(value).strip()):
        return "Invalid email format"
    return None


def check_required(label: str) -> Callable[[Any], Optional[str]]:
    def check(value: Any) -> Optional[str]:
        return f"{label} is required" if _blank(value) else None

    return check


def check_choice(enum_cls, label: str) -> Callable[[Any], Optional[str]]:
    allowed = [m.value for m in enum_cls]

    def check(value: Any) -> Optional[str]:
        if _blank(value):
            return f"Please select {label}"
        if value not in allowed:
            return f"Invalid {label}. Allowed: {', '.join(allowed)}"
        return None

    return check


check_inquiry_type = check_choice(InquiryType, "an enquiry source")
check_product_type = check_choice(ProductType, "a product type")
check_expense_category = check_choice(ExpenseCategory, "an expense category")
check_staff_role = check_choice(StaffRole, "a staff role")


def check_quantity(value: Any) -> Optional[str]:
    if _blank(value):
        return "Quantity is required"
    n = to_int(value)
    if n is None:
        return "Quantity must be a valid number"
    if n < 1:
        return "Quantity must be at least 1"
    return None


def check_products(value: Any) -> Optional[str]:
    if not isinstance(value, (list, tuple)) or not value:
        return "At least one product is required"
    for i, item in enumerate(value, start=1):
        if not isinstance(item, Mapping):
            return f"Product #{i} is malformed"
        msg = check_product_type(item.get("product")) or check_quantity(item.get("quantity"))
        if msg:
            return f"Product #{i}: {msg}"
    return None


def check_positive_amount(label: str, minimum: Decimal = Decimal("0.01")) -> Callable[[Any], Optional[str]]:
    def check(value: Any) -> Optional[str]:
        if _blank(value):
            return f"{label} is required"
        d = to_decimal(value)
        if d is None:
            return f"{label} must be a number"
        if d < minimum:
            return f"{label} must be at least {minimum}"
        return None

    return check


def check_quoted_amount(value: Any, minimum: Decimal = Decimal("1")) -> Optional[str]:
    d = to_decimal(value)
    if d is None or d < minimum:
        return f"Please enter a valid quoted amount of {minimum} or greater."
    return None


def check_pickup_date(value: Any, today: date) -> Optional[str]:
    d = to_date(value)
    if d is None:
        return "Pickup date is required"
    if d < today:
        return "Pickup date cannot be in the past"
    return None


def check_delivery_date(value: Any, pickup: Optional[date], min_gap_days: int = 15) -> Optional[str]:
    d = to_date(value)
    if d is None:
        return "Delivery date is required"
    if pickup is not None and d < pickup + timedelta(days=min_gap_days):
        return f"Delivery date must be at least {min_gap_days} days after the pickup date"
    return None


def check_date(label: str) -> Callable[[Any], Optional[str]]:
    def check(value: Any) -> Optional[str]:
        return None if to_date(value) is not None else f"{label} must be a date (YYYY-MM-DD)"

    return check


ENQUIRY_FIELDS: dict[str, Callable[[Any], Optional[str]]] = {
    "customerName": check_name,
    "phone": check_phone,
    "inquiryType": check_inquiry_type,
    "products": check_products,
}

EXPENSE_FIELDS: dict[str, Callable[[Any], Optional[str]]] = {
    "title": check_required("Title"),
    "amount": check_positive_amount("Amount"),
    "category": check_expense_category,
    "date": check_date("Date"),
}

EMPLOYEE_FIELDS: dict[str, Callable[[Any], Optional[str]]] = {
    "name": check_name,
    "role": check_required("Role"),
    "monthlySalary": check_positive_amount("Monthly salary"),
    "dateAdded": check_date("Date added"),
}

BUSINESS_FIELDS: dict[str, Callable[[Any], Optional[str]]] = {
    "businessName": check_required("Business name"),
    "ownerName": check_required("Owner name"),
    "phone": check_required("Phone"),
    "email": check_email,
    "address": check_required("Address"),
}

STAFF_FIELDS: dict[str, Callable[[Any], Optional[str]]] = {
    "name": check_name,
    "role": check_staff_role,
    "email": check_email,
    "phone": check_required("Phone"),
}


def validate(
    payload: Mapping[str, Any],
    checks: Mapping[str, Callable[[Any], Optional[str]]],
    *,
    partial: bool = False,
    only: Iterable[str] | None = None,
) -> dict[str, str]:
    """Run `checks` against `payload`. With `partial=True` fields missing from
    the payload are skipped, which is what the edit path wants."""
    names = list(only) if only is not None else list(checks)
    errors: dict[str, str] = {}
    for name in names:
        if partial and name not in payload:
            continue
        msg = checks[name](payload.get(name))
        if msg:
            errors[name] = msg
    return errors
