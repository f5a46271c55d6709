"""camelCase JSON <-> domain objects.

`to_json` is used both for API responses and for the JSONB stage-detail
columns, so everything it returns is plain JSON (no Decimal, no datetime).
"""
from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from .domain import (
    BillingDetails,
    BillingItem,
    DeliveryDetails,
    DeliveryMethod,
    DeliveryStatus,
    ItemPhotos,
    PickupDetails,
    PickupStatus,
    ProductItem,
    ProductType,
    ServiceDetails,
    ServiceStatus,
    ServiceTask,
    ServiceType,
)
from .errors import ValidationError
from .validators import to_date, to_datetime, to_decimal, to_int

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {camel(f.name): to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def snake_keys(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {snake(k): v for k, v in payload.items()}


# ---------------------------------------------------------------- stage details

def _opt_enum(enum_cls, value: Any):
    return enum_cls(value) if value else None


def item_photos_from_json(data: Mapping[str, Any]) -> ItemPhotos:
    try:
        product = ProductType(data.get("product"))
    except ValueError:
        raise ValidationError.single("items", f"Unknown product '{data.get('product')}'") from None
    index = to_int(data.get("itemIndex"))
    if index is None:
        raise ValidationError.single("items", "Each item needs a numeric itemIndex")
    photos = data.get("photos") or []
    if not isinstance(photos, list):
        raise ValidationError.single("items", "photos must be a list")
    return ItemPhotos(
        product=product,
        item_index=index,
        photos=tuple(str(p) for p in photos if p),
        notes=data.get("notes") or None,
    )


def pickup_details_from_json(data: Optional[Mapping[str, Any]]) -> Optional[PickupDetails]:
    if not data:
        return None
    return PickupDetails(
        status=PickupStatus(data["status"]),
        scheduled_time=to_datetime(data.get("scheduledTime")),
        assigned_to=data.get("assignedTo"),
        collection_photo=data.get("collectionPhoto"),
        collection_notes=data.get("collectionNotes"),
        collected_at=to_datetime(data.get("collectedAt")),
        received_items=tuple(item_photos_from_json(i) for i in data.get("receivedItems") or []),
        received_notes=data.get("receivedNotes"),
        received_at=to_datetime(data.get("receivedAt")),
    )


def service_task_from_json(data: Mapping[str, Any]) -> ServiceTask:
    return ServiceTask(
        type=ServiceType(data["type"]),
        status=ServiceStatus(data.get("status") or "pending"),
        product=_opt_enum(ProductType, data.get("product")),
        item_index=to_int(data.get("itemIndex")),
        before_photo=data.get("beforePhoto"),
        after_photo=data.get("afterPhoto"),
        started_at=to_datetime(data.get("startedAt")),
        completed_at=to_datetime(data.get("completedAt")),
        notes=data.get("notes"),
    )


def billing_item_from_json(data: Mapping[str, Any]) -> BillingItem:
    return BillingItem(
        service_type=ServiceType(data["serviceType"]),
        original_amount=to_decimal(data.get("originalAmount")) or Decimal("0"),
        discount_value=to_decimal(data.get("discountValue")) or Decimal("0"),
        discount_amount=to_decimal(data.get("discountAmount")) or Decimal("0"),
        final_amount=to_decimal(data.get("finalAmount")) or Decimal("0"),
        gst_rate=to_decimal(data.get("gstRate")) or Decimal("0"),
        gst_amount=to_decimal(data.get("gstAmount")) or Decimal("0"),
        description=data.get("description"),
    )


def billing_details_from_json(data: Optional[Mapping[str, Any]]) -> Optional[BillingDetails]:
    if not data:
        return None
    return BillingDetails(
        items=tuple(billing_item_from_json(i) for i in data.get("items") or []),
        gst_included=bool(data.get("gstIncluded")),
        final_amount=to_decimal(data.get("finalAmount")) or Decimal("0"),
        gst_amount=to_decimal(data.get("gstAmount")) or Decimal("0"),
        subtotal=to_decimal(data.get("subtotal")) or Decimal("0"),
        total_amount=to_decimal(data.get("totalAmount")) or Decimal("0"),
        invoice_number=data.get("invoiceNumber") or "",
        invoice_date=to_date(data.get("invoiceDate")),
        customer_name=data.get("customerName") or "",
        customer_phone=data.get("customerPhone") or "",
        customer_address=data.get("customerAddress") or "",
        notes=data.get("notes"),
        generated_at=to_datetime(data.get("generatedAt")),
    )


def service_details_from_json(data: Optional[Mapping[str, Any]]) -> Optional[ServiceDetails]:
    if not data:
        return None
    return ServiceDetails(
        estimated_cost=to_decimal(data.get("estimatedCost")),
        actual_cost=to_decimal(data.get("actualCost")),
        received_notes=data.get("receivedNotes"),
        work_notes=data.get("workNotes"),
        tasks=tuple(service_task_from_json(t) for t in data.get("tasks") or []),
        final_photo=data.get("finalPhoto"),
        completed_at=to_datetime(data.get("completedAt")),
        billing_details=billing_details_from_json(data.get("billingDetails")),
    )


def delivery_details_from_json(data: Optional[Mapping[str, Any]]) -> Optional[DeliveryDetails]:
    if not data:
        return None
    return DeliveryDetails(
        status=DeliveryStatus(data["status"]),
        delivery_method=_opt_enum(DeliveryMethod, data.get("deliveryMethod")),
        scheduled_time=to_datetime(data.get("scheduledTime")),
        assigned_to=data.get("assignedTo"),
        delivery_address=data.get("deliveryAddress"),
        proof_photo=data.get("proofPhoto"),
        customer_signature=data.get("customerSignature"),
        delivery_notes=data.get("deliveryNotes"),
        delivered_at=to_datetime(data.get("deliveredAt")),
    )


def products_from_json(items: list[Mapping[str, Any]]) -> tuple[ProductItem, ...]:
    # callers validate with validators.check_products first
    return tuple(ProductItem(product=ProductType(i["product"]), quantity=int(i["quantity"])) for i in items)


# ---------------------------------------------------------------- transitions

# JSON key -> workflow parameter name, where plain camel->snake is not enough
_PARAM_ALIASES = {
    "assignedTo": {"assign-pickup": "assignee"},
    "deliveryMethod": {"schedule-delivery": "method"},
    "customerSignature": {"deliver": "signature"},
}


def transition_params(action: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for key, value in payload.items():
        if key == "action":
            continue
        name = _PARAM_ALIASES.get(key, {}).get(action) or snake(key)
        params[name] = value
    if action == "receive":
        raw = params.get("items") or []
        if not isinstance(raw, list):
            raise ValidationError.single("items", "items must be a list")
        params["items"] = [item_photos_from_json(i) for i in raw if isinstance(i, Mapping)]
    elif action == "generate-bill":
        raw = params.get("items") or []
        if not isinstance(raw, list):
            raise ValidationError.single("items", "items must be a list")
        params["items"] = [snake_keys(i) if isinstance(i, Mapping) else i for i in raw]
    return params
