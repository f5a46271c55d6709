from __future__ import annotations

from flask import Blueprint

from .common import ctx, json_body, ok

settings_bp = Blueprint("settings", __name__)


@settings_bp.route("/settings/business", methods=["GET"])
def get_business():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.settings.get_business(conn))


@settings_bp.route("/settings/business", methods=["POST"])
def save_business():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        info = c.settings.save_business(conn, payload)
    return ok(info, message="Business information saved")


@settings_bp.route("/settings/staff", methods=["GET"])
def list_staff():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.settings.list_staff(conn))


@settings_bp.route("/settings/staff/<int:staff_id>", methods=["GET"])
def get_staff(staff_id: int):
    c = ctx()
    with c.db.session() as conn:
        return ok(c.settings.get_staff(conn, staff_id))


@settings_bp.route("/settings/staff", methods=["POST"])
def create_staff():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        staff = c.settings.create_staff(conn, payload)
    return ok(staff, 201, message="Staff member created")


@settings_bp.route("/settings/staff/<int:staff_id>", methods=["PUT"])
def update_staff(staff_id: int):
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        staff = c.settings.update_staff(conn, staff_id, payload)
    return ok(staff, message="Staff member updated")


@settings_bp.route("/settings/staff/<int:staff_id>", methods=["DELETE"])
def delete_staff(staff_id: int):
    c = ctx()
    with c.db.transaction() as conn:
        c.settings.delete_staff(conn, staff_id)
    return ok(None, message="Staff member deleted")


@settings_bp.route("/settings/security", methods=["GET"])
def get_security():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.settings.get_security(conn))


@settings_bp.route("/settings/security", methods=["POST"])
def save_security():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        settings = c.settings.save_security(conn, payload)
    return ok(settings, message="Security settings updated")


@settings_bp.route("/settings/notifications", methods=["GET"])
def get_notifications():
    c = ctx()
    with c.db.session() as conn:
        return ok(c.settings.get_notifications(conn))


@settings_bp.route("/settings/notifications", methods=["POST"])
def save_notifications():
    c = ctx()
    payload = json_body()
    with c.db.transaction() as conn:
        settings = c.settings.save_notifications(conn, payload)
    return ok(settings, message="Notification settings updated")
