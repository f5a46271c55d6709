from __future__ import annotations

from flask import Blueprint, request

from .common import ctx, json_body, ok

enquiries_bp = Blueprint("enquiries", __name__)


@enquiries_bp.route("/enquiries", methods=["GET"])
def list_enquiries():
    c = ctx()
    with c.db.session() as conn:
        rows = c.enquiries.list(
            conn,
            stage=request.args.get("stage") or None,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
        )
    return ok(rows, total=len(rows))


@enquiries_bp.route("/enquiries/stats", methods=["GET"])
def enquiry_stats():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.enquiries.stats(conn))


@enquiries_bp.route("/enquiries/<int:enquiry_id>", methods=["GET"])
def get_enquiry(enquiry_id: int):
    c = ctx()
    with c.db.session() as conn:
        return ok(c.enquiries.get(conn, enquiry_id))


@enquiries_bp.route("/enquiries", methods=["POST"])
def create_enquiry():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        enquiry = c.enquiries.create(conn, payload)
    return ok(enquiry, 201, message="Enquiry created")


@enquiries_bp.route("/enquiries/<int:enquiry_id>", methods=["PUT"])
def update_enquiry(enquiry_id: int):
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        enquiry = c.enquiries.update(conn, enquiry_id, payload)
    return ok(enquiry, message="Enquiry updated")


@enquiries_bp.route("/enquiries/<int:enquiry_id>", methods=["DELETE"])
def delete_enquiry(enquiry_id: int):
    c = ctx()
    with c.db.transaction() as conn:
        c.enquiries.delete(conn, enquiry_id)
    return ok(None, message=f"Enquiry {enquiry_id} deleted")


@enquiries_bp.route("/enquiries/<int:enquiry_id>/convert", methods=["POST"])
def convert_enquiry(enquiry_id: int):
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        enquiry = c.enquiries.transition(conn, enquiry_id, "convert", payload)
    return ok(enquiry, message="Enquiry converted")


@enquiries_bp.route("/enquiries/<int:enquiry_id>/transitions", methods=["POST"])
def transition_enquiry(enquiry_id: int):
    c = ctx()
    payload = json_body()
    action = str(payload.get("action") or "")
    with c.db.transaction() as conn:
        enquiry = c.enquiries.transition(conn, enquiry_id, action, payload)
    return ok(enquiry, action=action)


@enquiries_bp.route("/dashboard", methods=["GET"])
def dashboard():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.reports.dashboard(conn))
