from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping

from psycopg import Connection

from .. import stats, workflow
from ..config import BusinessConfig
from ..domain import Enquiry, EnquiryStatus, InquiryType, Stage, next_stage
from ..errors import NotFoundError, ValidationError
from ..repositories.enquiry_repo import EnquiryRepository
from ..serializers import products_from_json, transition_params
from ..validators import ENQUIRY_FIELDS, clean_phone, validate

logger = logging.getLogger(__name__)

# plain fields the edit form may change; everything else goes through the workflow
_EDITABLE = {
    "customerName": "customer_name",
    "phone": "phone",
    "address": "address",
    "message": "message",
    "inquiryType": "inquiry_type",
    "products": "products",
    "notes": "notes",
    "assignedTo": "assigned_to",
}

# status values an edit may set, and the workflow action that sets them
_STATUS_ACTIONS = {
    EnquiryStatus.CONTACTED.value: "contact",
    EnquiryStatus.CLOSED.value: "close",
    EnquiryStatus.CONVERTED.value: "convert",
}

# an edit may move an order one stage forward; this is the action that does it
_STAGE_ACTIONS = {
    Stage.PICKUP: "schedule-pickup",
    Stage.SERVICE: "receive",
    Stage.DELIVERY: "finish-service",
    Stage.COMPLETED: "deliver",
}


class EnquiryService:
    def __init__(
        self,
        *,
        enquiry_repo: EnquiryRepository,
        rules: BusinessConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.enquiry_repo = enquiry_repo
        self.rules = rules or BusinessConfig()
        self.clock = clock

    def create(self, conn: Connection, payload: Mapping[str, Any]) -> Enquiry:
        errors = validate(payload, ENQUIRY_FIELDS)
        if errors:
            raise ValidationError(errors)

        enquiry = Enquiry(
            id=None,
            customer_name=str(payload["customerName"]).strip(),
            phone=clean_phone(str(payload["phone"])),
            address=str(payload.get("address") or "").strip(),
            message=str(payload.get("message") or "").strip(),
            inquiry_type=InquiryType(payload["inquiryType"]),
            products=products_from_json(payload["products"]),
            date=self.clock(),
            notes=payload.get("notes") or None,
        )
        enquiry_id = self.enquiry_repo.create(conn, enquiry)
        logger.info("Enquiry #%s created for %s", enquiry_id, enquiry.customer_name)
        return self.get(conn, enquiry_id)

    def get(self, conn: Connection, enquiry_id: int, *, for_update: bool = False) -> Enquiry:
        enquiry = self.enquiry_repo.get(conn, enquiry_id, for_update=for_update)
        if enquiry is None:
            raise NotFoundError("Enquiry", enquiry_id)
        return enquiry

    def list(
        self,
        conn: Connection,
        *,
        stage: str | None = None,
        status: str | None = None,
        search: str | None = None,
    ) -> list[Enquiry]:
        errors = {}
        if stage and stage not in {s.value for s in Stage}:
            errors["stage"] = f"Unknown stage '{stage}'"
        if status and status not in {s.value for s in EnquiryStatus}:
            errors["status"] = f"Unknown status '{status}'"
        if errors:
            raise ValidationError(errors)
        return self.enquiry_repo.list(conn, stage=stage, status=status, search=search)

    def update(self, conn: Connection, enquiry_id: int, payload: Mapping[str, Any]) -> Enquiry:
        current = self.get(conn, enquiry_id, for_update=True)

        errors = validate(payload, ENQUIRY_FIELDS, partial=True)
        actions = []
        status = payload.get("status")
        if status is not None and status != current.status.value:
            if status in _STATUS_ACTIONS:
                actions.append(_STATUS_ACTIONS[status])
            else:
                errors["status"] = f"Cannot change status from '{current.status.value}' to '{status}'"
        stage = payload.get("currentStage")
        if stage is not None and stage != current.current_stage.value:
            target = next_stage(current.current_stage)
            if target is None or stage != target.value:
                errors["currentStage"] = (
                    f"Cannot move order #{enquiry_id} from '{current.current_stage.value}' to '{stage}'"
                )
            else:
                actions.append(_STAGE_ACTIONS[target])
        if errors:
            raise ValidationError(errors)

        changes: dict[str, Any] = {}
        for key, attr in _EDITABLE.items():
            if key not in payload:
                continue
            value = payload[key]
            if key == "phone":
                value = clean_phone(str(value))
            elif key == "inquiryType":
                value = InquiryType(value)
            elif key == "products":
                value = products_from_json(value)
            elif isinstance(value, str):
                value = value.strip()
            elif value is None and attr in ("address", "message"):
                value = ""
            changes[attr] = value

        updated = replace(current, **changes)
        now = self.clock()
        for action in actions:
            params = transition_params(action, payload)
            updated = workflow.apply(updated, action, params, now=now, rules=self.rules)

        self.enquiry_repo.save(conn, updated)
        logger.info(
            "Enquiry #%s updated (%s)",
            enquiry_id,
            ", ".join(sorted(changes) + actions) or "no changes",
        )
        return updated

    def delete(self, conn: Connection, enquiry_id: int) -> None:
        if not self.enquiry_repo.delete(conn, enquiry_id):
            raise NotFoundError("Enquiry", enquiry_id)
        logger.info("Enquiry #%s deleted", enquiry_id)

    def transition(self, conn: Connection, enquiry_id: int, action: str, payload: Mapping[str, Any]) -> Enquiry:
        current = self.get(conn, enquiry_id, for_update=True)
        params = transition_params(action, payload)
        updated = workflow.apply(current, action, params, now=self.clock(), rules=self.rules)
        self.enquiry_repo.save(conn, updated)
        logger.info(
            "Enquiry #%s %s: stage %s -> %s, status %s -> %s",
            enquiry_id,
            action,
            current.current_stage.value,
            updated.current_stage.value,
            current.status.value,
            updated.status.value,
        )
        return updated

    def by_stage(self, conn: Connection, stage: Stage) -> list[Enquiry]:
        return self.enquiry_repo.list(conn, stage=stage.value)

    def stats(self, conn: Connection) -> dict:
        return stats.enquiry_stats(self.enquiry_repo.list_all(conn))

    def pickup_stats(self, conn: Connection) -> dict:
        return stats.pickup_stats(self.enquiry_repo.list_all(conn))

    def service_stats(self, conn: Connection) -> dict:
        return stats.service_stats(self.enquiry_repo.list_all(conn))

    def delivery_stats(self, conn: Connection) -> dict:
        return stats.delivery_stats(self.enquiry_repo.list_all(conn))
