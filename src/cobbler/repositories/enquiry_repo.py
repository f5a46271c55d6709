from __future__ import annotations

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..db import row_as_dict, rows_as_dicts
from ..domain import Enquiry, EnquiryStatus, InquiryType, ProductItem, ProductType, Stage
from ..serializers import (
    delivery_details_from_json,
    pickup_details_from_json,
    service_details_from_json,
    to_json,
)
from ..validators import to_datetime

_COLUMNS = """
    id, customer_name, phone, address, message, inquiry_type, date, status,
    current_stage, contacted, contacted_at, assigned_to, notes, quoted_amount,
    final_amount, pickup_date, delivery_date, pickup_details, service_details,
    delivery_details
"""


def _jsonb(value) -> Jsonb | None:
    return Jsonb(to_json(value)) if value is not None else None


def _to_enquiry(row: dict, products: list[ProductItem]) -> Enquiry:
    return Enquiry(
        id=int(row["id"]),
        customer_name=row["customer_name"],
        phone=row["phone"],
        address=row["address"] or "",
        message=row["message"] or "",
        inquiry_type=InquiryType(row["inquiry_type"]),
        products=tuple(products),
        date=to_datetime(row["date"]),
        status=EnquiryStatus(row["status"]),
        current_stage=Stage(row["current_stage"]),
        contacted=bool(row["contacted"]),
        contacted_at=row["contacted_at"],
        assigned_to=row["assigned_to"],
        notes=row["notes"],
        quoted_amount=row["quoted_amount"],
        final_amount=row["final_amount"],
        pickup_date=row["pickup_date"],
        delivery_date=row["delivery_date"],
        pickup_details=pickup_details_from_json(row["pickup_details"]),
        service_details=service_details_from_json(row["service_details"]),
        delivery_details=delivery_details_from_json(row["delivery_details"]),
    )


class EnquiryRepository:
    def create(self, conn: Connection, enquiry: Enquiry) -> int:
        cur = conn.execute(
            """
            INSERT INTO enquiries(customer_name, phone, address, message, inquiry_type, date,
                                  status, current_stage, notes)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (
                enquiry.customer_name,
                enquiry.phone,
                enquiry.address,
                enquiry.message,
                enquiry.inquiry_type.value,
                enquiry.date,
                enquiry.status.value,
                enquiry.current_stage.value,
                enquiry.notes,
            ),
        )
        enquiry_id = int(cur.fetchone()[0])
        self._write_products(conn, enquiry_id, enquiry.products)
        return enquiry_id

    def _write_products(self, conn: Connection, enquiry_id: int, products) -> None:
        conn.execute("DELETE FROM enquiry_products WHERE enquiry_id = %s;", (enquiry_id,))
        for p in products:
            conn.execute(
                "INSERT INTO enquiry_products(enquiry_id, product, quantity) VALUES (%s, %s, %s);",
                (enquiry_id, p.product.value, p.quantity),
            )

    def _products_for(self, conn: Connection, ids: list[int]) -> dict[int, list[ProductItem]]:
        out: dict[int, list[ProductItem]] = {i: [] for i in ids}
        if not ids:
            return out
        cur = conn.execute(
            """
            SELECT enquiry_id, product, quantity
            FROM enquiry_products
            WHERE enquiry_id = ANY(%s)
            ORDER BY id;
            """,
            (ids,),
        )
        for enquiry_id, product, quantity in cur.fetchall():
            out[int(enquiry_id)].append(ProductItem(product=ProductType(product), quantity=int(quantity)))
        return out

    def get(self, conn: Connection, enquiry_id: int, *, for_update: bool = False) -> Enquiry | None:
        lock = " FOR UPDATE" if for_update else ""
        cur = conn.execute(f"SELECT {_COLUMNS} FROM enquiries WHERE id = %s{lock};", (enquiry_id,))
        row = row_as_dict(cur)
        if not row:
            return None
        products = self._products_for(conn, [enquiry_id])[enquiry_id]
        return _to_enquiry(row, products)

    def list(
        self,
        conn: Connection,
        *,
        stage: str | None = None,
        status: str | None = None,
        search: str | None = None,
        limit: int = 500,
    ) -> list[Enquiry]:
        where = []
        params: list = []
        if stage:
            where.append("current_stage = %s")
            params.append(stage)
        if status:
            where.append("status = %s")
            params.append(status)
        if search:
            where.append("(customer_name ILIKE %s OR phone ILIKE %s OR address ILIKE %s)")
            like = f"%{search}%"
            params.extend([like, like, like])
        clause = f"WHERE {' AND '.join(where)}" if where else ""
        params.append(limit)
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM enquiries {clause} ORDER BY date DESC, id DESC LIMIT %s;",
            params,
        )
        rows = rows_as_dicts(cur)
        products = self._products_for(conn, [int(r["id"]) for r in rows])
        return [_to_enquiry(r, products[int(r["id"])]) for r in rows]

    def list_all(self, conn: Connection) -> list[Enquiry]:
        return self.list(conn, limit=100_000)

    def save(self, conn: Connection, enquiry: Enquiry) -> None:
        conn.execute(
            """
            UPDATE enquiries SET
              customer_name = %s, phone = %s, address = %s, message = %s, inquiry_type = %s,
              status = %s, current_stage = %s, contacted = %s, contacted_at = %s,
              assigned_to = %s, notes = %s, quoted_amount = %s, final_amount = %s,
              pickup_date = %s, delivery_date = %s, pickup_details = %s,
              service_details = %s, delivery_details = %s, updated_at = now()
            WHERE id = %s;
            """,
            (
                enquiry.customer_name,
                enquiry.phone,
                enquiry.address,
                enquiry.message,
                enquiry.inquiry_type.value,
                enquiry.status.value,
                enquiry.current_stage.value,
                enquiry.contacted,
                enquiry.contacted_at,
                enquiry.assigned_to,
                enquiry.notes,
                enquiry.quoted_amount,
                enquiry.final_amount,
                enquiry.pickup_date,
                enquiry.delivery_date,
                _jsonb(enquiry.pickup_details),
                _jsonb(enquiry.service_details),
                _jsonb(enquiry.delivery_details),
                enquiry.id,
            ),
        )
        self._write_products(conn, enquiry.id, enquiry.products)

    def delete(self, conn: Connection, enquiry_id: int) -> bool:
        cur = conn.execute("DELETE FROM enquiries WHERE id = %s;", (enquiry_id,))
        return cur.rowcount > 0
