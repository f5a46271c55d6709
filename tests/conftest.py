from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime

import pytest

from cobbler.config import AppConfig, BusinessConfig, DbConfig
from cobbler.domain import Enquiry, InquiryType, ProductItem, ProductType
from cobbler.routes.common import ApiContext
from cobbler.services.enquiry_service import EnquiryService
from cobbler.services.expense_service import ExpenseService
from cobbler.services.report_service import ReportService
from cobbler.services.settings_service import SettingsService
from web_app import create_app

NOW = datetime(2024, 3, 1, 10, 0)
TOKEN = "test-token"


def make_order(**overrides) -> Enquiry:
    base = Enquiry(
        id=1,
        customer_name="Asha Rao",
        phone="9876543210",
        address="12 MG Road, Bengaluru",
        message="Heel repair",
        inquiry_type=InquiryType.WHATSAPP,
        products=(ProductItem(ProductType.SHOE, 2),),
        date=datetime(2024, 2, 20, 9, 30),
    )
    return replace(base, **overrides)


class FakeEnquiryRepo:
    def __init__(self) -> None:
        self.rows: dict[int, Enquiry] = {}
        self.saves = 0

    def create(self, conn, enquiry: Enquiry) -> int:
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(enquiry, id=new_id)
        return new_id

    def get(self, conn, enquiry_id: int, *, for_update: bool = False):
        return self.rows.get(enquiry_id)

    def list(self, conn, *, stage=None, status=None, search=None, limit=500):
        out = []
        for o in self.rows.values():
            if stage and o.current_stage.value != stage:
                continue
            if status and o.status.value != status:
                continue
            if search and search.lower() not in f"{o.customer_name} {o.phone} {o.address}".lower():
                continue
            out.append(o)
        return out[:limit]

    def list_all(self, conn):
        return list(self.rows.values())

    def save(self, conn, enquiry: Enquiry) -> None:
        self.saves += 1
        self.rows[enquiry.id] = enquiry

    def delete(self, conn, enquiry_id: int) -> bool:
        return self.rows.pop(enquiry_id, None) is not None


class FakeEmployeeRepo:
    def __init__(self) -> None:
        self.rows = {}

    def create(self, conn, employee) -> int:
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(employee, id=new_id)
        return new_id

    def get(self, conn, employee_id):
        return self.rows.get(employee_id)

    def list(self, conn, *, active_only=False):
        return [e for e in self.rows.values() if e.is_active or not active_only]

    def update(self, conn, employee) -> None:
        self.rows[employee.id] = employee

    def delete(self, conn, employee_id) -> bool:
        return self.rows.pop(employee_id, None) is not None


class FakeExpenseRepo:
    def __init__(self, employees: FakeEmployeeRepo | None = None) -> None:
        self.rows = {}
        self.employees = employees

    def _with_name(self, expense):
        if expense.employee_id and self.employees and expense.employee_id in self.employees.rows:
            return replace(expense, employee_name=self.employees.rows[expense.employee_id].name)
        return expense

    def create(self, conn, expense) -> int:
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(expense, id=new_id)
        return new_id

    def get(self, conn, expense_id):
        row = self.rows.get(expense_id)
        return self._with_name(row) if row else None

    def list(self, conn, limit=10_000):
        rows = sorted(self.rows.values(), key=lambda e: (e.date, e.id), reverse=True)
        return [self._with_name(e) for e in rows[:limit]]

    def update(self, conn, expense) -> None:
        self.rows[expense.id] = expense

    def delete(self, conn, expense_id) -> bool:
        return self.rows.pop(expense_id, None) is not None


class FakeSettingsRepo:
    def __init__(self) -> None:
        self.business = None
        self.staff = {}
        self.security = None
        self.notifications = None

    def get_business(self, conn):
        return self.business

    def save_business(self, conn, info) -> None:
        self.business = replace(info, id=1)

    def list_staff(self, conn):
        return sorted(self.staff.values(), key=lambda s: s.name)

    def get_staff(self, conn, staff_id):
        return self.staff.get(staff_id)

    def email_taken(self, conn, email, exclude_id=None) -> bool:
        return any(s.email.lower() == email.lower() and s.id != exclude_id for s in self.staff.values())

    def create_staff(self, conn, staff) -> int:
        new_id = max(self.staff, default=0) + 1
        self.staff[new_id] = replace(staff, id=new_id)
        return new_id

    def update_staff(self, conn, staff) -> None:
        self.staff[staff.id] = staff

    def delete_staff(self, conn, staff_id) -> bool:
        return self.staff.pop(staff_id, None) is not None

    def get_security(self, conn):
        return self.security

    def save_security(self, conn, settings) -> None:
        self.security = replace(settings, id=1)

    def get_notifications(self, conn):
        return self.notifications

    def save_notifications(self, conn, settings) -> None:
        self.notifications = replace(settings, id=1)


class FakeDb:
    """Stands in for `cobbler.db.Db`; the fake repositories ignore the connection."""

    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def session(self):
        yield object()

    @contextmanager
    def transaction(self):
        try:
            yield object()
            self.commits += 1
        except Exception:
            self.rollbacks += 1
            raise


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def enquiry_repo():
    return FakeEnquiryRepo()


@pytest.fixture
def employee_repo():
    return FakeEmployeeRepo()


@pytest.fixture
def expense_repo(employee_repo):
    return FakeExpenseRepo(employee_repo)


@pytest.fixture
def settings_repo():
    return FakeSettingsRepo()


@pytest.fixture
def enquiry_service(enquiry_repo, clock):
    return EnquiryService(enquiry_repo=enquiry_repo, rules=BusinessConfig(), clock=clock)


@pytest.fixture
def expense_service(expense_repo, employee_repo):
    return ExpenseService(expense_repo=expense_repo, employee_repo=employee_repo)


@pytest.fixture
def cfg(tmp_path):
    return AppConfig(
        name="Cobbler Test",
        log_level="DEBUG",
        api_token=TOKEN,
        upload_dir=str(tmp_path / "uploads"),
        db=DbConfig(host="localhost", port=5432, name="cobbler", user="cobbler", password="x"),
    )


@pytest.fixture
def db():
    return FakeDb()


@pytest.fixture
def context(cfg, db, enquiry_service, expense_service, enquiry_repo, expense_repo, settings_repo, clock):
    return ApiContext(
        cfg=cfg,
        db=db,
        enquiries=enquiry_service,
        expenses=expense_service,
        reports=ReportService(enquiry_repo=enquiry_repo, expense_repo=expense_repo, clock=clock),
        settings=SettingsService(settings_repo=settings_repo),
    )


@pytest.fixture
def app(cfg, context):
    app = create_app(cfg, context)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    c = app.test_client()
    c.environ_base["HTTP_X_TOKEN"] = TOKEN
    return c


@pytest.fixture
def anon_client(app):
    return app.test_client()


def new_enquiry_payload(**overrides) -> dict:
    payload = {
        "customerName": "Ravi Kumar",
        "phone": "+91 98765 43210",
        "address": "4 Park Street, Kolkata",
        "message": "Bag strap is torn",
        "inquiryType": "Instagram",
        "products": [{"product": "Bag", "quantity": 1}, {"product": "Shoe", "quantity": 2}],
    }
    payload.update(overrides)
    return payload


def conversion_payload(**overrides) -> dict:
    payload = {
        "quotedAmount": "1500",
        "pickupDate": date(2024, 3, 5).isoformat(),
        "deliveryDate": date(2024, 3, 25).isoformat(),
    }
    payload.update(overrides)
    return payload
