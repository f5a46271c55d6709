from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from cobbler import workflow
from cobbler.domain import DeliveryDetails, DeliveryStatus, ServiceDetails, Stage
from cobbler.repositories.enquiry_repo import _COLUMNS, EnquiryRepository
from cobbler.serializers import to_json

from conftest import NOW, make_order


class Column:
    def __init__(self, name: str) -> None:
        self.name = name


class FakeCursor:
    def __init__(self, rows=(), cols=(), rowcount=0) -> None:
        self.description = [Column(c) for c in cols]
        self.rows = list(rows)
        self.rowcount = rowcount

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)


class ScriptedConn:
    """Answers each execute() with the next queued cursor and records the call."""

    def __init__(self, *cursors: FakeCursor) -> None:
        self.cursors = list(cursors)
        self.calls: list[tuple[str, tuple]] = []

    def execute(self, sql, params=None):
        self.calls.append((" ".join(sql.split()), params))
        return self.cursors.pop(0) if self.cursors else FakeCursor()


COLS = [c.strip() for c in _COLUMNS.split(",")]


def enquiry_row(**overrides) -> tuple:
    row = {
        "id": 3,
        "customer_name": "Asha Rao",
        "phone": "9876543210",
        "address": "12 MG Road, Bengaluru",
        "message": "Heel repair",
        "inquiry_type": "WhatsApp",
        "date": datetime(2024, 2, 20, 9, 30),
        "status": "converted",
        "current_stage": "delivery",
        "contacted": True,
        "contacted_at": None,
        "assigned_to": None,
        "notes": None,
        "quoted_amount": Decimal("1500.00"),
        "final_amount": None,
        "pickup_date": date(2024, 3, 5),
        "delivery_date": date(2024, 3, 25),
        "pickup_details": None,
        "service_details": None,
        "delivery_details": None,
    }
    row.update(overrides)
    return tuple(row[c] for c in COLS)


def test_create_stores_the_full_creation_timestamp():
    conn = ScriptedConn(FakeCursor(rows=[(7,)]))
    created_at = datetime(2024, 3, 1, 10, 45, 12)
    assert EnquiryRepository().create(conn, make_order(id=None, date=created_at)) == 7

    sql, params = conn.calls[0]
    assert sql.startswith("INSERT INTO enquiries")
    assert params[5] == created_at
    assert conn.calls[1][0].startswith("DELETE FROM enquiry_products")
    assert conn.calls[2][1] == (7, "Shoe", 2)


def test_get_reads_a_day_only_date_as_midnight():
    # rows written before the column became a timestamp
    conn = ScriptedConn(
        FakeCursor(rows=[enquiry_row(date=date(2024, 2, 20))], cols=COLS),
        FakeCursor(rows=[(3, "Shoe", 2)]),
    )
    enquiry = EnquiryRepository().get(conn, 3)
    assert enquiry.date == datetime(2024, 2, 20, 0, 0)
    assert isinstance(enquiry.date, datetime)


def test_get_parses_billing_details_from_jsonb():
    billed = workflow.generate_bill(
        make_order(
            id=3,
            current_stage=Stage.DELIVERY,
            service_details=ServiceDetails(actual_cost=Decimal("900")),
            delivery_details=DeliveryDetails(status=DeliveryStatus.READY),
        ),
        [{"service_type": "Repairing", "original_amount": "900", "discount_value": "10"}],
        now=NOW,
    )
    conn = ScriptedConn(
        FakeCursor(
            rows=[
                enquiry_row(
                    final_amount=billed.final_amount,
                    service_details=to_json(billed.service_details),
                    delivery_details=to_json(billed.delivery_details),
                )
            ],
            cols=COLS,
        ),
        FakeCursor(rows=[(3, "Shoe", 2)]),
    )
    enquiry = EnquiryRepository().get(conn, 3, for_update=True)
    assert conn.calls[0][0].endswith("FOR UPDATE;")
    assert enquiry.service_details.billing_details == billed.service_details.billing_details
    assert enquiry.final_amount == Decimal("955.80")


def test_missing_row_returns_none():
    conn = ScriptedConn(FakeCursor(rows=[], cols=COLS))
    assert EnquiryRepository().get(conn, 99) is None
