"""Equipment blueprint with search, CRUD, saved lists and popularity."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, NotFound

from models import db
from models.equipment import Equipment
from models.saved_equipment import SavedEquipment
from utils.auth import ADMIN_ROLES, authenticate, current_user, role_required
from utils.payloads import EquipmentPayload
from utils.request_validation import parse_form_or_json

equipment_bp = Blueprint("equipment", __name__)

POPULAR_LIMIT_DEFAULT = 10
POPULAR_LIMIT_MAX = 50


def _get_equipment_or_404(equipment_id: int) -> Equipment:
    equipment = db.session.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFound("Equipment not found.")
    return equipment


def _uploaded_images():
    return [file for file in request.files.getlist("images") if file and file.filename]


def _uploader():
    return current_app.extensions["image_uploader"]


@equipment_bp.route("", methods=["GET"])
def list_equipment():
    """Return equipment matching optional ``name``, ``category`` and ``searchTerm`` filters."""

    query = Equipment.search_filter(
        Equipment.query,
        name=request.args.get("name"),
        category=request.args.get("category"),
        term=request.args.get("searchTerm") or request.args.get("q"),
    )
    results = query.order_by(Equipment.created_at.desc(), Equipment.id.desc()).all()
    return jsonify({"results": [item.to_dict() for item in results], "count": len(results)})


@equipment_bp.route("/popular", methods=["GET"])
def popular_equipment():
    """Return the most saved equipment, most saved first."""

    limit = request.args.get("limit", POPULAR_LIMIT_DEFAULT, type=int)
    if limit is None or limit < 1:
        raise BadRequest("limit must be a positive integer.")
    limit = min(limit, POPULAR_LIMIT_MAX)

    results = (
        Equipment.query.order_by(
            Equipment.save_count.desc(), Equipment.created_at.desc(), Equipment.id.desc()
        )
        .limit(limit)
        .all()
    )
    return jsonify({"results": [item.to_dict() for item in results], "count": len(results)})


@equipment_bp.route("/<int:equipment_id>", methods=["GET"])
def get_equipment(equipment_id: int):
    equipment = _get_equipment_or_404(equipment_id)
    return jsonify(equipment.to_dict(include_owner=True))


@equipment_bp.route("", methods=["POST"])
@role_required(*ADMIN_ROLES)
def create_equipment():
    """Create equipment, uploading any attached ``images``. Admins and supers only."""

    data = parse_form_or_json(request)
    payload = EquipmentPayload.from_dict(data)
    images = _uploaded_images()
    image_urls = _uploader().upload(images) if images else []

    equipment = Equipment(
        **payload.changes,
        images=image_urls,
        user_id=current_user.id,
    )
    db.session.add(equipment)
    db.session.commit()

    current_app.logger.info(
        "Equipment %s created by %s with %d image(s)",
        equipment.id,
        current_user.email,
        len(image_urls),
    )
    return jsonify(equipment.to_dict(include_owner=True)), HTTPStatus.CREATED


@equipment_bp.route("/<int:equipment_id>", methods=["PUT"])
@role_required(*ADMIN_ROLES)
def update_equipment(equipment_id: int):
    """Partially update equipment; new images replace the existing list."""

    equipment = _get_equipment_or_404(equipment_id)
    images = _uploaded_images()
    data = parse_form_or_json(request, allow_empty=True)
    if not data and not images:
        raise BadRequest("Nothing to update.")
    payload = EquipmentPayload.from_dict(data, partial=True)

    replaced = []
    if images:
        new_urls = _uploader().upload(images)
        replaced = list(equipment.images or [])
        equipment.images = new_urls

    for field, value in payload.changes.items():
        setattr(equipment, field, value)
    db.session.commit()
    if replaced:
        _uploader().discard(replaced)

    return jsonify(equipment.to_dict(include_owner=True))


@equipment_bp.route("/<int:equipment_id>", methods=["DELETE"])
@role_required(*ADMIN_ROLES)
def delete_equipment(equipment_id: int):
    equipment = _get_equipment_or_404(equipment_id)
    images = list(equipment.images or [])

    # Lock every list being rewritten so a concurrent save is not overwritten.
    for saved in SavedEquipment.query.with_for_update().all():
        saved.remove(equipment.id)
    db.session.delete(equipment)
    db.session.commit()

    _uploader().discard(images)
    current_app.logger.info("Equipment %s deleted by %s", equipment_id, current_user.email)
    return "", HTTPStatus.NO_CONTENT


@equipment_bp.route("/view/saved", methods=["GET"])
@authenticate
def view_saved_equipment():
    """Return the caller's saved equipment in the order it was saved."""

    saved = SavedEquipment.query.filter_by(user_id=current_user.id).first()
    ids = list(saved.equipment_ids or []) if saved else []

    by_id = {}
    if ids:
        by_id = {item.id: item for item in Equipment.query.filter(Equipment.id.in_(ids))}
    results = [by_id[item_id].to_dict() for item_id in ids if item_id in by_id]
    return jsonify({"results": results, "count": len(results)})


def _locked_saved_list(user_id: int) -> SavedEquipment | None:
    return (
        SavedEquipment.query.filter_by(user_id=user_id).with_for_update().first()
    )


@equipment_bp.route("/save/<int:equipment_id>", methods=["PUT"])
@authenticate
def save_equipment(equipment_id: int):
    """Add equipment to the caller's saved list. Saving twice is a no-op."""

    equipment = _get_equipment_or_404(equipment_id)

    saved = _locked_saved_list(current_user.id)
    if saved is None:
        saved = SavedEquipment(user_id=current_user.id, equipment_ids=[])
        db.session.add(saved)
        try:
            db.session.flush()
        except IntegrityError:
            # Another request created the row first; append to that one.
            db.session.rollback()
            equipment = _get_equipment_or_404(equipment_id)
            saved = _locked_saved_list(current_user.id)

    added = saved.add(equipment.id)
    if added:
        Equipment.adjust_save_count([equipment.id], 1)
    db.session.commit()

    return jsonify({"saved": added, **saved.to_dict()}), HTTPStatus.OK


@equipment_bp.route("/save/<int:equipment_id>", methods=["DELETE"])
@authenticate
def unsave_equipment(equipment_id: int):
    """Remove equipment from the caller's saved list."""

    saved = _locked_saved_list(current_user.id)
    removed = bool(saved and saved.remove(equipment_id))
    if removed:
        Equipment.adjust_save_count([equipment_id], -1)
    db.session.commit()

    payload = saved.to_dict() if saved else {"user_id": current_user.id, "equipment_ids": []}
    return jsonify({"removed": removed, **payload}), HTTPStatus.OK
