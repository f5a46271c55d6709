"""Pickup, service and delivery boards.

Each board lists the orders waiting on it, reports its counters and exposes
the workflow actions that belong to it as POST /<board>/<id>/<verb>.
"""
from __future__ import annotations

from typing import Callable

from flask import Blueprint

from ..domain import EnquiryStatus, Stage
from .common import ApiContext, ctx, fail, json_body, ok

Fetch = Callable[[ApiContext, object], list]


def _stage_blueprint(name: str, fetch: Fetch, stats_attr: str, actions: dict[str, str]) -> Blueprint:
    bp = Blueprint(name, __name__)

    @bp.route(f"/{name}", methods=["GET"])
    def board():
        c = ctx()
        with c.db.session() as conn:
            rows = fetch(c, conn)
        return ok(rows, total=len(rows))

    @bp.route(f"/{name}/stats", methods=["GET"])
    def board_stats():
        c = ctx()
        with c.db.session() as conn:
            return ok(getattr(c.enquiries, stats_attr)(conn))

    @bp.route(f"/{name}/<int:enquiry_id>/<verb>", methods=["POST"])
    def act(enquiry_id: int, verb: str):
        action = actions.get(verb)
        if action is None:
            return fail("Unknown action", 404, message=f"'{verb}' is not one of: {', '.join(actions)}")
        c = ctx()
        payload = json_body()
        with c.db.transaction() as conn:
            enquiry = c.enquiries.transition(conn, enquiry_id, action, payload)
        return ok(enquiry, action=action)

    return bp


def _pickup_board(c: ApiContext, conn) -> list:
    # converted enquiries are waiting for a pickup to be scheduled
    waiting = c.enquiries.list(conn, stage=Stage.ENQUIRY.value, status=EnquiryStatus.CONVERTED.value)
    return waiting + c.enquiries.by_stage(conn, Stage.PICKUP)


def _service_board(c: ApiContext, conn) -> list:
    return c.enquiries.by_stage(conn, Stage.SERVICE)


def _delivery_board(c: ApiContext, conn) -> list:
    return c.enquiries.by_stage(conn, Stage.DELIVERY) + c.enquiries.by_stage(conn, Stage.COMPLETED)


pickup_bp = _stage_blueprint(
    "pickup",
    _pickup_board,
    "pickup_stats",
    {"schedule": "schedule-pickup", "assign": "assign-pickup", "collect": "collect", "receive": "receive"},
)

service_bp = _stage_blueprint(
    "service",
    _service_board,
    "service_stats",
    {
        "assign": "assign-services",
        "start": "start-service",
        "complete": "complete-service",
        "finish": "finish-service",
    },
)

delivery_bp = _stage_blueprint(
    "delivery",
    _delivery_board,
    "delivery_stats",
    {"bill": "generate-bill", "schedule": "schedule-delivery", "dispatch": "dispatch", "complete": "deliver"},
)
