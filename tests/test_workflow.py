from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from cobbler import workflow
from cobbler.config import BusinessConfig
from cobbler.domain import (
    DeliveryDetails,
    DeliveryMethod,
    DeliveryStatus,
    EnquiryStatus,
    ItemPhotos,
    PickupDetails,
    PickupStatus,
    ProductItem,
    ProductType,
    ServiceStatus,
    ServiceType,
    Stage,
)
from cobbler.errors import ValidationError

from conftest import NOW, make_order


def convert(order, amount="1500", pickup="2024-03-05", delivery="2024-03-25", now=NOW):
    return workflow.convert_enquiry(order, amount, pickup, delivery, now=now)


def converted():
    return convert(make_order())


def in_pickup(status=PickupStatus.ASSIGNED):
    return replace(
        converted(),
        current_stage=Stage.PICKUP,
        pickup_details=PickupDetails(status=status, assigned_to="Manoj"),
    )


def received():
    items = [ItemPhotos(ProductType.SHOE, 1, ("shoe-1.jpg",))]
    return workflow.mark_received(in_pickup(PickupStatus.COLLECTED), items, now=NOW)


def with_done_services():
    order = workflow.assign_services(received(), ["Repairing", "Cleaning"], now=NOW)
    for i in range(2):
        order = workflow.start_service(order, i, f"before-{i}.jpg", now=NOW)
        order = workflow.complete_service(order, i, f"after-{i}.jpg", now=NOW)
    return order


def out_for_delivery():
    order = workflow.complete_service_stage(with_done_services(), "1800", now=NOW)
    order = workflow.schedule_delivery(order, "customer-pickup", "2024-03-25T11:00:00Z", now=NOW)
    return workflow.mark_out_for_delivery(order, "Deepak", now=NOW)


# ---------------------------------------------------------------- conversion

def test_convert_sets_status_amounts_and_contact_time():
    order = converted()
    assert order.status == EnquiryStatus.CONVERTED
    assert order.current_stage == Stage.ENQUIRY
    assert order.quoted_amount == Decimal("1500")
    assert order.pickup_date == date(2024, 3, 5)
    assert order.delivery_date == date(2024, 3, 25)
    assert order.contacted is True
    assert order.contacted_at == NOW


def test_convert_rejects_amount_below_one():
    with pytest.raises(ValidationError) as exc:
        convert(make_order(), amount="0.5")
    assert set(exc.value.errors) == {"quotedAmount"}
    assert "1 or greater" in exc.value.errors["quotedAmount"]


def test_convert_rejects_delivery_closer_than_fifteen_days():
    with pytest.raises(ValidationError) as exc:
        convert(make_order(), pickup="2024-01-01", delivery="2024-01-10", now=datetime(2023, 12, 31))
    assert set(exc.value.errors) == {"deliveryDate"}


def test_convert_accepts_delivery_exactly_fifteen_days_after_pickup():
    order = convert(make_order(), pickup="2024-01-01", delivery="2024-01-16", now=datetime(2023, 12, 31))
    assert order.delivery_date == date(2024, 1, 16)


def test_convert_reports_every_failing_field_together():
    with pytest.raises(ValidationError) as exc:
        convert(make_order(), amount="abc", pickup="2024-02-01", delivery="2024-02-05")
    assert set(exc.value.errors) == {"quotedAmount", "pickupDate", "deliveryDate"}


def test_convert_rejects_past_pickup_date():
    with pytest.raises(ValidationError) as exc:
        convert(make_order(), pickup="2024-02-29", delivery="2024-04-01")
    assert "pickupDate" in exc.value.errors


def test_convert_only_from_new_status():
    with pytest.raises(ValidationError) as exc:
        convert(converted())
    assert "status" in exc.value.errors


def test_convert_honours_configured_minimum():
    rules = BusinessConfig(min_quoted_amount=Decimal("500"), min_delivery_gap_days=7)
    order = workflow.convert_enquiry(make_order(), "500", "2024-03-05", "2024-03-12", now=NOW, rules=rules)
    assert order.quoted_amount == Decimal("500")
    with pytest.raises(ValidationError):
        workflow.convert_enquiry(make_order(), "499.99", "2024-03-05", "2024-03-12", now=NOW, rules=rules)


def test_rejected_transition_leaves_order_untouched():
    order = make_order()
    with pytest.raises(ValidationError):
        convert(order, amount="0")
    assert order.status == EnquiryStatus.NEW
    assert order.quoted_amount is None


def test_mark_contacted_then_close():
    order = workflow.mark_contacted(make_order(), now=NOW)
    assert order.status == EnquiryStatus.CONTACTED
    assert order.contacted_at == NOW
    closed = workflow.close_enquiry(order, now=NOW)
    assert closed.status == EnquiryStatus.CLOSED
    assert closed.current_stage == Stage.ENQUIRY


def test_close_rejects_converted_enquiry():
    with pytest.raises(ValidationError) as exc:
        workflow.close_enquiry(converted(), now=NOW)
    assert "status" in exc.value.errors


# ---------------------------------------------------------------- pickup

def test_schedule_pickup_requires_conversion():
    with pytest.raises(ValidationError) as exc:
        workflow.schedule_pickup(make_order(), now=NOW)
    assert "status" in exc.value.errors


def test_schedule_pickup_defaults_time_to_pickup_date():
    order = workflow.schedule_pickup(converted(), now=NOW)
    assert order.current_stage == Stage.PICKUP
    assert order.pickup_details.status == PickupStatus.SCHEDULED
    assert order.pickup_details.scheduled_time == datetime(2024, 3, 5)


def test_assign_pickup_requires_assignee():
    order = workflow.schedule_pickup(converted(), now=NOW)
    with pytest.raises(ValidationError) as exc:
        workflow.assign_pickup(order, "  ", now=NOW)
    assert "assignedTo" in exc.value.errors
    assigned = workflow.assign_pickup(order, "Manoj", now=NOW)
    assert assigned.pickup_details.status == PickupStatus.ASSIGNED
    assert assigned.pickup_details.assigned_to == "Manoj"


def test_collect_without_proof_photo_is_rejected():
    with pytest.raises(ValidationError) as exc:
        workflow.mark_collected(in_pickup(), None, now=NOW)
    assert "proofPhoto" in exc.value.errors


def test_collect_records_photo_and_time():
    order = workflow.mark_collected(in_pickup(), "collect.jpg", "two pairs", now=NOW)
    assert order.pickup_details.status == PickupStatus.COLLECTED
    assert order.pickup_details.collection_photo == "collect.jpg"
    assert order.pickup_details.collected_at == NOW
    assert order.current_stage == Stage.PICKUP


def test_receive_needs_at_least_one_photo():
    with pytest.raises(ValidationError) as exc:
        workflow.mark_received(in_pickup(), [ItemPhotos(ProductType.SHOE, 1, ())], now=NOW)
    assert "photos" in exc.value.errors


def test_receive_checks_item_index_against_quantity():
    items = [ItemPhotos(ProductType.SHOE, 3, ("a.jpg",))]
    with pytest.raises(ValidationError) as exc:
        workflow.mark_received(in_pickup(), items, now=NOW)
    assert "items[Shoe#3]" in exc.value.errors


def test_receive_rejects_products_not_in_order():
    items = [ItemPhotos(ProductType.BAG, 1, ("a.jpg",))]
    with pytest.raises(ValidationError) as exc:
        workflow.mark_received(in_pickup(), items, now=NOW)
    assert "items[Bag#1]" in exc.value.errors


def test_receive_limits_photos_per_item():
    items = [ItemPhotos(ProductType.SHOE, 1, tuple(f"{i}.jpg" for i in range(5)))]
    with pytest.raises(ValidationError):
        workflow.mark_received(in_pickup(), items, now=NOW)


def test_receive_sums_quantities_of_repeated_products():
    order = in_pickup()
    order = replace(order, products=(ProductItem(ProductType.SHOE, 1), ProductItem(ProductType.SHOE, 1)))
    result = workflow.mark_received(order, [ItemPhotos(ProductType.SHOE, 2, ("b.jpg",))], now=NOW)
    assert result.current_stage == Stage.SERVICE


def test_receive_moves_to_service():
    order = received()
    assert order.current_stage == Stage.SERVICE
    assert order.pickup_details.status == PickupStatus.RECEIVED
    assert order.pickup_details.received_at == NOW
    assert order.service_details is not None
    assert order.service_details.tasks == ()


# ---------------------------------------------------------------- service

def test_assign_services_skips_duplicates():
    order = workflow.assign_services(received(), ["Repairing", "Repairing", "Dyeing"], now=NOW)
    assert [t.type for t in order.service_details.tasks] == [ServiceType.REPAIRING, ServiceType.DYEING]
    with pytest.raises(ValidationError):
        workflow.assign_services(order, ["Dyeing"], now=NOW)


def test_assign_services_rejects_unknown_type():
    with pytest.raises(ValidationError) as exc:
        workflow.assign_services(received(), ["Polishing"], now=NOW)
    assert "serviceTypes" in exc.value.errors


def test_service_task_needs_before_and_after_photos():
    order = workflow.assign_services(received(), ["Cleaning"], now=NOW)
    with pytest.raises(ValidationError) as exc:
        workflow.start_service(order, 0, "", now=NOW)
    assert "beforePhoto" in exc.value.errors

    started = workflow.start_service(order, 0, "before.jpg", now=NOW)
    assert started.service_details.tasks[0].status == ServiceStatus.IN_PROGRESS
    with pytest.raises(ValidationError) as exc:
        workflow.complete_service(started, 0, None, now=NOW)
    assert "afterPhoto" in exc.value.errors


def test_finish_service_requires_all_tasks_done():
    order = workflow.assign_services(received(), ["Cleaning"], now=NOW)
    with pytest.raises(ValidationError) as exc:
        workflow.complete_service_stage(order, "900", now=NOW)
    assert "serviceTypes" in exc.value.errors


def test_finish_service_moves_to_delivery_with_final_amount():
    order = workflow.complete_service_stage(with_done_services(), "1800", "stitched", now=NOW)
    assert order.current_stage == Stage.DELIVERY
    assert order.final_amount == Decimal("1800")
    assert order.delivery_details == DeliveryDetails(status=DeliveryStatus.READY)


# ---------------------------------------------------------------- delivery

def ready_for_delivery():
    return workflow.complete_service_stage(with_done_services(), "1800", now=NOW)


def test_bill_applies_discount_then_gst_per_line():
    items = [
        {"service_type": "Repairing", "original_amount": "1000", "discount_value": "10", "gst_rate": "18"},
        {"service_type": "Cleaning", "original_amount": "333.33"},
    ]
    order = workflow.generate_bill(ready_for_delivery(), items, True, "thanks", now=NOW)
    bill = order.service_details.billing_details

    repair, cleaning = bill.items
    assert repair.discount_amount == Decimal("100.00")
    assert repair.final_amount == Decimal("900.00")
    assert repair.gst_amount == Decimal("162.00")
    # default rate from config, 333.33 * 18% = 59.9994
    assert cleaning.gst_rate == Decimal("18")
    assert cleaning.gst_amount == Decimal("60.00")

    assert bill.final_amount == Decimal("1333.33")
    assert bill.subtotal == Decimal("1233.33")
    assert bill.gst_amount == Decimal("222.00")
    assert bill.total_amount == Decimal("1455.33")
    assert bill.invoice_number == "INV-20240301-0001"
    assert bill.invoice_date == date(2024, 3, 1)
    assert bill.customer_name == "Asha Rao"
    assert order.final_amount == Decimal("1455.33")
    assert order.current_stage == Stage.DELIVERY


def test_bill_rounds_half_up_and_skips_gst_when_excluded():
    items = [{"service_type": "Dyeing", "original_amount": "10.125", "gst_rate": "18"}]
    bill = workflow.generate_bill(ready_for_delivery(), items, "false", now=NOW).service_details.billing_details
    assert bill.items[0].final_amount == Decimal("10.13")
    assert bill.gst_amount == Decimal("0.00")
    assert bill.total_amount == Decimal("10.13")


def test_bill_discount_is_capped_at_the_line_amount():
    items = [{"service_type": "Repairing", "original_amount": "500", "discount_value": "100"}]
    bill = workflow.generate_bill(ready_for_delivery(), items, now=NOW).service_details.billing_details
    assert bill.items[0].final_amount == Decimal("0.00")
    assert bill.total_amount == Decimal("0.00")


def test_bill_collects_every_line_error():
    ready = ready_for_delivery()
    items = [
        {"service_type": "Polishing", "original_amount": "-1"},
        {"service_type": "Repairing", "original_amount": "100", "discount_value": "150", "gst_rate": "x"},
    ]
    with pytest.raises(ValidationError) as exc:
        workflow.generate_bill(ready, items, "maybe", now=NOW)
    assert set(exc.value.errors) == {
        "gstIncluded",
        "items[0].serviceType",
        "items[0].originalAmount",
        "items[1].discountValue",
        "items[1].gstRate",
    }
    assert ready.service_details.billing_details is None


def test_bill_needs_items_and_the_delivery_stage():
    with pytest.raises(ValidationError) as exc:
        workflow.generate_bill(with_done_services(), [], now=NOW)
    assert set(exc.value.errors) == {"currentStage", "items"}


def test_bill_total_is_the_order_revenue():
    order = workflow.generate_bill(
        out_for_delivery(), [{"service_type": "Repairing", "original_amount": "2000"}], False, now=NOW
    )
    done = workflow.complete_delivery(order, "proof.jpg", now=NOW)
    assert done.revenue == Decimal("2000.00")


def test_home_delivery_defaults_to_customer_address():
    ready = workflow.complete_service_stage(with_done_services(), "1800", now=NOW)
    order = workflow.schedule_delivery(ready, "home-delivery", "2024-03-25T10:00:00", now=NOW)
    assert order.delivery_details.delivery_method == DeliveryMethod.HOME_DELIVERY
    assert order.delivery_details.delivery_address == "12 MG Road, Bengaluru"


def test_schedule_delivery_requires_method_and_time():
    ready = workflow.complete_service_stage(with_done_services(), "1800", now=NOW)
    with pytest.raises(ValidationError) as exc:
        workflow.schedule_delivery(ready, "drone", None, now=NOW)
    assert set(exc.value.errors) == {"deliveryMethod", "scheduledTime"}


def test_complete_delivery_without_proof_photo_is_rejected():
    with pytest.raises(ValidationError) as exc:
        workflow.complete_delivery(out_for_delivery(), "", now=NOW)
    assert "proofPhoto" in exc.value.errors


def test_complete_delivery_finishes_order():
    order = workflow.complete_delivery(out_for_delivery(), "proof.jpg", "sig.png", now=NOW)
    assert order.current_stage == Stage.COMPLETED
    assert order.delivery_details.status == DeliveryStatus.DELIVERED
    assert order.delivered_at == NOW
    assert order.revenue == Decimal("1800")


# ---------------------------------------------------------------- ordering

def test_stage_cannot_be_skipped():
    # an enquiry cannot jump straight to delivery
    with pytest.raises(ValidationError) as exc:
        workflow.schedule_delivery(converted(), "customer-pickup", "2024-03-25", now=NOW)
    assert "currentStage" in exc.value.errors


def test_completed_is_terminal():
    done = workflow.complete_delivery(out_for_delivery(), "proof.jpg", now=NOW)
    for action in workflow.TRANSITIONS:
        with pytest.raises(ValidationError):
            workflow.apply(done, action, {}, now=NOW)


def test_full_lifecycle_visits_stages_in_order():
    seen = []
    order = make_order()
    steps = [
        ("convert", {"quoted_amount": "1500", "pickup_date": "2024-03-05", "delivery_date": "2024-03-25"}),
        ("schedule-pickup", {}),
        ("assign-pickup", {"assignee": "Manoj"}),
        ("collect", {"proof_photo": "c.jpg"}),
        ("receive", {"items": [ItemPhotos(ProductType.SHOE, 1, ("r.jpg",))]}),
        ("assign-services", {"service_types": ["Repairing"]}),
        ("start-service", {"task_index": 0, "before_photo": "b.jpg"}),
        ("complete-service", {"task_index": 0, "after_photo": "a.jpg"}),
        ("finish-service", {"actual_cost": "1600"}),
        ("generate-bill", {"items": [{"service_type": "Repairing", "original_amount": "1600"}]}),
        ("schedule-delivery", {"method": "customer-pickup", "scheduled_time": "2024-03-25T10:00"}),
        ("dispatch", {}),
        ("deliver", {"proof_photo": "p.jpg"}),
    ]
    for action, params in steps:
        order = workflow.apply(order, action, params, now=NOW)
        if not seen or seen[-1] != order.current_stage:
            seen.append(order.current_stage)
    assert seen == [Stage.ENQUIRY, Stage.PICKUP, Stage.SERVICE, Stage.DELIVERY, Stage.COMPLETED]


def test_apply_rejects_unknown_action():
    with pytest.raises(ValidationError) as exc:
        workflow.apply(make_order(), "teleport", {}, now=NOW)
    assert "action" in exc.value.errors
