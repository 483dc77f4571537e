"""User administration and profile endpoints."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import Conflict, Forbidden, NotFound

from models import db
from models.equipment import Equipment
from models.saved_equipment import SavedEquipment
from models.user import User
from utils.auth import ADMIN_ROLES, authenticate, current_user, role_required
from utils.payloads import UserUpdatePayload
from utils.request_validation import parse_json_request

users_bp = Blueprint("users", __name__)


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


@users_bp.route("", methods=["GET"])
@role_required(*ADMIN_ROLES)
def list_users():
    users = User.query.order_by(User.id.asc()).all()
    return jsonify({"results": [user.to_dict() for user in users], "count": len(users)})


@users_bp.route("/<int:user_id>", methods=["GET"])
@authenticate
def get_user(user_id: int):
    return jsonify(_get_user_or_404(user_id).to_dict())


@users_bp.route("/<int:user_id>", methods=["PUT"])
@authenticate
def update_user(user_id: int):
    """Update profile fields. Users may only edit their own account."""

    user = _get_user_or_404(user_id)
    if user.id != current_user.id:
        raise Forbidden("You can only update your own profile.")

    payload = UserUpdatePayload.from_dict(parse_json_request(request))
    for field, value in payload.changes.items():
        setattr(user, field, value)
    db.session.commit()

    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@role_required(*ADMIN_ROLES)
def delete_user(user_id: int):
    user = _get_user_or_404(user_id)
    if user.role == "super" and current_user.role != "super":
        raise Forbidden("Only a super user can delete another super user.")

    owned = db.session.query(Equipment.id).filter(Equipment.user_id == user.id).count()
    if owned:
        raise Conflict(
            f"User still owns {owned} equipment listing(s); reassign or delete them first."
        )

    # The saved list goes with the user, so release its popularity counts first.
    saved = (
        SavedEquipment.query.filter_by(user_id=user.id).with_for_update().first()
    )
    if saved is not None:
        Equipment.adjust_save_count(saved.equipment_ids or [], -1)

    email, actor = user.email, current_user.email
    db.session.delete(user)
    db.session.commit()

    current_app.logger.info("User %s deleted by %s", email, actor)
    return jsonify({"message": "User deleted."}), HTTPStatus.OK
