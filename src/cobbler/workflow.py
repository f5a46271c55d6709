"""Order lifecycle: enquiry -> pickup -> service -> delivery -> completed.

Each transition is a pure function taking the current `Enquiry` and returning
a new one. Preconditions and field checks are collected into a single
`ValidationError`, so a rejected transition never produces a half-updated
order. `current_stage` only ever moves to the next entry of `STAGE_ORDER`;
`completed` is terminal.

`TRANSITIONS` maps the action names used by the API to these functions and
`apply()` dispatches one of them.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional, Sequence

from .config import BusinessConfig
from .domain import (
    BillingDetails,
    BillingItem,
    DeliveryDetails,
    DeliveryMethod,
    DeliveryStatus,
    Enquiry,
    EnquiryStatus,
    ItemPhotos,
    PickupDetails,
    PickupStatus,
    ServiceDetails,
    ServiceStatus,
    ServiceTask,
    ServiceType,
    Stage,
    next_stage,
)
from .errors import ValidationError
from .validators import (
    check_delivery_date,
    check_pickup_date,
    check_quoted_amount,
    to_bool,
    to_date,
    to_datetime,
    to_decimal,
    to_int,
)

DEFAULT_RULES = BusinessConfig()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> Optional[str]:
    return None if _blank(value) else str(value).strip()


def _expect_stage(order: Enquiry, stage: Stage, errors: dict[str, str]) -> None:
    if order.current_stage != stage:
        errors["currentStage"] = (
            f"Order #{order.id} is in stage '{order.current_stage.value}', expected '{stage.value}'"
        )


def _raise_if(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationError(errors)


def _advance(order: Enquiry, target: Stage, **changes: Any) -> Enquiry:
    allowed = next_stage(order.current_stage)
    if target != allowed:
        raise ValidationError.single(
            "currentStage",
            f"Cannot move order #{order.id} from '{order.current_stage.value}' to '{target.value}'",
        )
    return replace(order, current_stage=target, **changes)


# ---------------------------------------------------------------- enquiry

def convert_enquiry(
    order: Enquiry,
    quoted_amount: Any,
    pickup_date: Any,
    delivery_date: Any,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.ENQUIRY, errors)
    if order.status != EnquiryStatus.NEW:
        errors["status"] = f"Only new enquiries can be converted (status is '{order.status.value}')"

    msg = check_quoted_amount(quoted_amount, rules.min_quoted_amount)
    if msg:
        errors["quotedAmount"] = msg

    msg = check_pickup_date(pickup_date, now.date())
    if msg:
        errors["pickupDate"] = msg

    msg = check_delivery_date(delivery_date, to_date(pickup_date), rules.min_delivery_gap_days)
    if msg:
        errors["deliveryDate"] = msg

    _raise_if(errors)
    return replace(
        order,
        status=EnquiryStatus.CONVERTED,
        contacted=True,
        contacted_at=now,
        quoted_amount=to_decimal(quoted_amount),
        pickup_date=to_date(pickup_date),
        delivery_date=to_date(delivery_date),
    )


def mark_contacted(order: Enquiry, *, now: datetime, rules: BusinessConfig = DEFAULT_RULES) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.ENQUIRY, errors)
    if order.status != EnquiryStatus.NEW:
        errors["status"] = f"Only new enquiries can be marked contacted (status is '{order.status.value}')"
    _raise_if(errors)
    return replace(order, status=EnquiryStatus.CONTACTED, contacted=True, contacted_at=now)


def close_enquiry(order: Enquiry, *, now: datetime, rules: BusinessConfig = DEFAULT_RULES) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.ENQUIRY, errors)
    if order.status not in (EnquiryStatus.NEW, EnquiryStatus.CONTACTED):
        errors["status"] = f"Cannot close an enquiry with status '{order.status.value}'"
    _raise_if(errors)
    return replace(order, status=EnquiryStatus.CLOSED)


# ---------------------------------------------------------------- pickup

def schedule_pickup(
    order: Enquiry,
    scheduled_time: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.ENQUIRY, errors)
    if order.status != EnquiryStatus.CONVERTED:
        errors["status"] = "Enquiry must be converted before a pickup is scheduled"
    when = to_datetime(scheduled_time)
    if not _blank(scheduled_time) and when is None:
        errors["scheduledTime"] = "Scheduled time must be an ISO date-time"
    _raise_if(errors)
    if when is None and order.pickup_date is not None:
        when = datetime(order.pickup_date.year, order.pickup_date.month, order.pickup_date.day)
    return _advance(
        order,
        Stage.PICKUP,
        pickup_details=PickupDetails(status=PickupStatus.SCHEDULED, scheduled_time=when),
    )


def assign_pickup(
    order: Enquiry,
    assignee: Any,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.PICKUP, errors)
    details = order.pickup_details
    if details is not None and details.status != PickupStatus.SCHEDULED:
        errors["pickupStatus"] = f"Pickup is already '{details.status.value}'"
    if _blank(assignee):
        errors["assignedTo"] = "Please choose who will collect the items"
    _raise_if(errors)
    base = details or PickupDetails(status=PickupStatus.SCHEDULED)
    return replace(
        order,
        pickup_details=replace(base, status=PickupStatus.ASSIGNED, assigned_to=_text(assignee)),
    )


def mark_collected(
    order: Enquiry,
    proof_photo: Any,
    notes: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.PICKUP, errors)
    details = order.pickup_details
    if details is None or details.status != PickupStatus.ASSIGNED:
        errors["pickupStatus"] = "Pickup must be assigned before it is collected"
    if _blank(proof_photo):
        errors["proofPhoto"] = "A collection photo is required"
    _raise_if(errors)
    return replace(
        order,
        pickup_details=replace(
            details,
            status=PickupStatus.COLLECTED,
            collection_photo=str(proof_photo),
            collection_notes=_text(notes),
            collected_at=now,
        ),
    )


def mark_received(
    order: Enquiry,
    items: Sequence[ItemPhotos] | None,
    notes: Any = None,
    estimated_cost: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.PICKUP, errors)
    details = order.pickup_details
    if details is None or details.status not in (PickupStatus.ASSIGNED, PickupStatus.COLLECTED):
        errors["pickupStatus"] = "Pickup must be assigned or collected before items are received"

    items = tuple(items or ())
    if sum(len(it.photos) for it in items) == 0:
        errors["photos"] = "At least one photo of the received items is required"

    quantities: dict = {}
    for p in order.products:
        quantities[p.product] = quantities.get(p.product, 0) + p.quantity
    for it in items:
        key = f"items[{it.product.value}#{it.item_index}]"
        if it.product not in quantities:
            errors[key] = f"{it.product.value} is not part of this order"
        elif not 1 <= it.item_index <= quantities[it.product]:
            errors[key] = f"Item index must be between 1 and {quantities[it.product]}"
        elif len(it.photos) > rules.max_item_photos:
            errors[key] = f"At most {rules.max_item_photos} photos per item"

    cost = to_decimal(estimated_cost)
    if not _blank(estimated_cost) and (cost is None or cost < 0):
        errors["estimatedCost"] = "Estimated cost must be a positive number"
    _raise_if(errors)

    return _advance(
        order,
        Stage.SERVICE,
        pickup_details=replace(
            details,
            status=PickupStatus.RECEIVED,
            received_items=items,
            received_notes=_text(notes),
            received_at=now,
        ),
        service_details=ServiceDetails(estimated_cost=cost, received_notes=_text(notes)),
    )


# ---------------------------------------------------------------- service

def _task_at(order: Enquiry, task_index: Any, errors: dict[str, str]) -> tuple[int, Optional[ServiceTask]]:
    tasks = order.service_details.tasks if order.service_details else ()
    i = to_int(task_index)
    if i is None or not 0 <= i < len(tasks):
        errors["taskIndex"] = f"No service task #{task_index} on order #{order.id}"
        return -1, None
    return i, tasks[i]


def _with_task(order: Enquiry, i: int, task: ServiceTask) -> Enquiry:
    sd = order.service_details
    tasks = sd.tasks[:i] + (task,) + sd.tasks[i + 1:]
    return replace(order, service_details=replace(sd, tasks=tasks))


def assign_services(
    order: Enquiry,
    service_types: Sequence[Any] | None,
    product: Any = None,
    item_index: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.SERVICE, errors)

    allowed = {t.value: t for t in ServiceType}
    requested = list(service_types or [])
    if not requested:
        errors["serviceTypes"] = "Select at least one service type"
    bad = [str(t) for t in requested if getattr(t, "value", t) not in allowed]
    if bad:
        errors["serviceTypes"] = f"Unknown service type(s): {', '.join(bad)}"

    products = {p.product.value: p for p in order.products}
    prod_value = getattr(product, "value", product)
    if not _blank(prod_value) and prod_value not in products:
        errors["product"] = f"{prod_value} is not part of this order"
    idx = to_int(item_index)
    if item_index is not None and idx is None:
        errors["itemIndex"] = "Item index must be a number"
    _raise_if(errors)

    prod = products[prod_value].product if not _blank(prod_value) else None
    sd = order.service_details or ServiceDetails()
    existing = {(t.type, t.product, t.item_index) for t in sd.tasks}
    new_tasks = []
    for raw in requested:
        st = allowed[getattr(raw, "value", raw)]
        if (st, prod, idx) in existing:
            continue
        existing.add((st, prod, idx))
        new_tasks.append(ServiceTask(type=st, product=prod, item_index=idx))
    if not new_tasks:
        raise ValidationError.single("serviceTypes", "These services are already assigned")
    return replace(order, service_details=replace(sd, tasks=sd.tasks + tuple(new_tasks)))


def start_service(
    order: Enquiry,
    task_index: Any,
    before_photo: Any,
    notes: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.SERVICE, errors)
    i, task = _task_at(order, task_index, errors)
    if task is not None and task.status != ServiceStatus.PENDING:
        errors["taskStatus"] = f"{task.type.value} is already '{task.status.value}'"
    if _blank(before_photo):
        errors["beforePhoto"] = "A before photo is required to start work"
    _raise_if(errors)
    return _with_task(
        order,
        i,
        replace(task, status=ServiceStatus.IN_PROGRESS, before_photo=str(before_photo),
                started_at=now, notes=_text(notes) or task.notes),
    )


def complete_service(
    order: Enquiry,
    task_index: Any,
    after_photo: Any,
    notes: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.SERVICE, errors)
    i, task = _task_at(order, task_index, errors)
    if task is not None and task.status != ServiceStatus.IN_PROGRESS:
        errors["taskStatus"] = f"{task.type.value} must be in progress to complete it"
    if _blank(after_photo):
        errors["afterPhoto"] = "An after photo is required to complete work"
    _raise_if(errors)
    return _with_task(
        order,
        i,
        replace(task, status=ServiceStatus.DONE, after_photo=str(after_photo),
                completed_at=now, notes=_text(notes) or task.notes),
    )


def complete_service_stage(
    order: Enquiry,
    actual_cost: Any,
    work_notes: Any = None,
    final_photo: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.SERVICE, errors)
    sd = order.service_details or ServiceDetails()
    if not sd.tasks:
        errors["serviceTypes"] = "Assign at least one service before finishing"
    elif any(t.status != ServiceStatus.DONE for t in sd.tasks):
        pending = sorted({t.type.value for t in sd.tasks if t.status != ServiceStatus.DONE})
        errors["serviceTypes"] = f"Services not finished: {', '.join(pending)}"
    cost = to_decimal(actual_cost)
    if cost is None or cost < 0:
        errors["actualCost"] = "Actual cost is required and cannot be negative"
    _raise_if(errors)
    return _advance(
        order,
        Stage.DELIVERY,
        final_amount=cost,
        service_details=replace(
            sd,
            actual_cost=cost,
            work_notes=_text(work_notes),
            final_photo=_text(final_photo) or sd.final_photo,
            completed_at=now,
        ),
        delivery_details=DeliveryDetails(status=DeliveryStatus.READY),
    )


# ---------------------------------------------------------------- delivery

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(raw: Any, default: Decimal, key: str, errors: dict[str, str]) -> Decimal:
    if _blank(raw):
        return default
    value = to_decimal(raw)
    if value is None or not 0 <= value <= HUNDRED:
        errors[key] = "Must be a percentage between 0 and 100"
        return default
    return value


def _bill_line(
    raw: Any, n: int, gst_included: bool, rules: BusinessConfig, errors: dict[str, str]
) -> Optional[BillingItem]:
    key = f"items[{n}]"
    if not isinstance(raw, Mapping):
        errors[key] = "Each bill line must be an object"
        return None
    allowed = {t.value: t for t in ServiceType}
    requested = getattr(raw.get("service_type"), "value", raw.get("service_type"))
    service_type = allowed.get(requested) if isinstance(requested, str) else None
    if service_type is None:
        errors[f"{key}.serviceType"] = f"Service type must be one of: {', '.join(allowed)}"
    amount = to_decimal(raw.get("original_amount"))
    if amount is None or amount < 0:
        errors[f"{key}.originalAmount"] = "Amount is required and cannot be negative"
    discount_pct = _percent(raw.get("discount_value"), Decimal("0"), f"{key}.discountValue", errors)
    gst_rate = _percent(raw.get("gst_rate"), rules.default_gst_rate, f"{key}.gstRate", errors)
    if service_type is None or amount is None or amount < 0:
        return None

    discount = min(amount * discount_pct / HUNDRED, amount)
    net = amount - discount
    gst = net * gst_rate / HUNDRED if gst_included else Decimal("0")
    return BillingItem(
        service_type=service_type,
        original_amount=_money(amount),
        discount_value=discount_pct,
        discount_amount=_money(discount),
        final_amount=_money(net),
        gst_rate=gst_rate,
        gst_amount=_money(gst),
        description=_text(raw.get("description")),
    )


def generate_bill(
    order: Enquiry,
    items: Sequence[Any] | None,
    gst_included: Any = True,
    notes: Any = None,
    invoice_number: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    """Bill the finished work. Can be regenerated until the order is delivered;
    the bill total becomes the order's final amount."""
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.DELIVERY, errors)
    include_gst = to_bool(True if gst_included is None else gst_included)
    if include_gst is None:
        errors["gstIncluded"] = "gstIncluded must be true or false"
    raw_items = list(items or [])
    if not raw_items:
        errors["items"] = "Add at least one service to the bill"
    lines = [_bill_line(raw, n, bool(include_gst), rules, errors) for n, raw in enumerate(raw_items)]
    _raise_if(errors)

    subtotal = sum((ln.final_amount for ln in lines), Decimal("0"))
    gst_total = sum((ln.gst_amount for ln in lines), Decimal("0"))
    billing = BillingDetails(
        items=tuple(lines),
        gst_included=include_gst,
        final_amount=_money(sum((ln.original_amount for ln in lines), Decimal("0"))),
        gst_amount=_money(gst_total),
        subtotal=_money(subtotal),
        total_amount=_money(subtotal + gst_total),
        invoice_number=_text(invoice_number) or f"INV-{now:%Y%m%d}-{order.id or 0:04d}",
        invoice_date=now.date(),
        customer_name=order.customer_name,
        customer_phone=order.phone,
        customer_address=order.address,
        notes=_text(notes),
        generated_at=now,
    )
    sd = order.service_details or ServiceDetails()
    return replace(
        order,
        final_amount=billing.total_amount,
        service_details=replace(sd, billing_details=billing),
    )


def schedule_delivery(
    order: Enquiry,
    method: Any,
    scheduled_time: Any,
    delivery_address: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.DELIVERY, errors)
    details = order.delivery_details
    if details is None or details.status != DeliveryStatus.READY:
        errors["deliveryStatus"] = "Order is not ready for delivery"

    methods = {m.value: m for m in DeliveryMethod}
    chosen = methods.get(getattr(method, "value", method))
    if chosen is None:
        errors["deliveryMethod"] = f"Delivery method must be one of: {', '.join(methods)}"

    when = to_datetime(scheduled_time)
    if when is None:
        errors["scheduledTime"] = "Scheduled time is required"

    address = _text(delivery_address)
    if chosen == DeliveryMethod.HOME_DELIVERY:
        address = address or _text(order.address)
        if not address:
            errors["deliveryAddress"] = "Home delivery needs an address"
    _raise_if(errors)
    return replace(
        order,
        delivery_details=replace(
            details,
            status=DeliveryStatus.SCHEDULED,
            delivery_method=chosen,
            scheduled_time=when,
            delivery_address=address,
        ),
    )


def mark_out_for_delivery(
    order: Enquiry,
    assigned_to: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.DELIVERY, errors)
    details = order.delivery_details
    if details is None or details.status != DeliveryStatus.SCHEDULED:
        errors["deliveryStatus"] = "Delivery must be scheduled first"
    _raise_if(errors)
    return replace(
        order,
        delivery_details=replace(
            details,
            status=DeliveryStatus.OUT_FOR_DELIVERY,
            assigned_to=_text(assigned_to) or details.assigned_to,
        ),
    )


def complete_delivery(
    order: Enquiry,
    proof_photo: Any,
    signature: Any = None,
    notes: Any = None,
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    errors: dict[str, str] = {}
    _expect_stage(order, Stage.DELIVERY, errors)
    details = order.delivery_details
    if details is None or details.status != DeliveryStatus.OUT_FOR_DELIVERY:
        errors["deliveryStatus"] = "Order must be out for delivery"
    if _blank(proof_photo):
        errors["proofPhoto"] = "A delivery proof photo is required"
    _raise_if(errors)
    return _advance(
        order,
        Stage.COMPLETED,
        delivery_details=replace(
            details,
            status=DeliveryStatus.DELIVERED,
            proof_photo=str(proof_photo),
            customer_signature=_text(signature),
            delivery_notes=_text(notes),
            delivered_at=now,
        ),
    )


Transition = Callable[..., Enquiry]

TRANSITIONS: dict[str, tuple[Transition, tuple[str, ...]]] = {
    "convert": (convert_enquiry, ("quoted_amount", "pickup_date", "delivery_date")),
    "contact": (mark_contacted, ()),
    "close": (close_enquiry, ()),
    "schedule-pickup": (schedule_pickup, ("scheduled_time",)),
    "assign-pickup": (assign_pickup, ("assignee",)),
    "collect": (mark_collected, ("proof_photo", "notes")),
    "receive": (mark_received, ("items", "notes", "estimated_cost")),
    "assign-services": (assign_services, ("service_types", "product", "item_index")),
    "start-service": (start_service, ("task_index", "before_photo", "notes")),
    "complete-service": (complete_service, ("task_index", "after_photo", "notes")),
    "finish-service": (complete_service_stage, ("actual_cost", "work_notes", "final_photo")),
    "generate-bill": (generate_bill, ("items", "gst_included", "notes", "invoice_number")),
    "schedule-delivery": (schedule_delivery, ("method", "scheduled_time", "delivery_address")),
    "dispatch": (mark_out_for_delivery, ("assigned_to",)),
    "deliver": (complete_delivery, ("proof_photo", "signature", "notes")),
}


def apply(
    order: Enquiry,
    action: str,
    params: Mapping[str, Any],
    *,
    now: datetime,
    rules: BusinessConfig = DEFAULT_RULES,
) -> Enquiry:
    try:
        fn, names = TRANSITIONS[action]
    except KeyError:
        raise ValidationError.single(
            "action", f"Unknown action '{action}'. Allowed: {', '.join(TRANSITIONS)}"
        ) from None
    kwargs = {n: params.get(n) for n in names}
    return fn(order, **kwargs, now=now, rules=rules)