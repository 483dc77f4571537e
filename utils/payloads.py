"""Typed request payloads built from validated request bodies."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from werkzeug.exceptions import BadRequest

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(raw_email: str | None) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    return (raw_email or "").strip().lower()


def _text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, (str, int, float)):
        raise BadRequest(f"{key} must be a string.")
    return str(value).strip()


def _email(data: dict) -> str:
    email = normalize_email(_text(data, "email"))
    if not email:
        raise BadRequest("Email is required.")
    if not EMAIL_PATTERN.match(email):
        raise BadRequest("Invalid email address.")
    return email


def _password(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"{key} is required.")
    return value


def _date(data: dict, key: str) -> Optional[date]:
    raw = data.get(key)
    if raw in (None, ""):
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise BadRequest(f"{key} must be an ISO 8601 date (YYYY-MM-DD).")


def _string_list(value: Any, key: str) -> list[str]:
    """Accept a JSON list, a JSON-encoded list, repeated form fields or CSV."""

    if value is None or value == "":
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except ValueError:
                raise BadRequest(f"{key} must be a list of strings.")
        else:
            value = stripped.split(",")
    if not isinstance(value, (list, tuple)):
        raise BadRequest(f"{key} must be a list of strings.")

    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise BadRequest(f"{key} must be a list of strings.")
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


@dataclass(frozen=True)
class SignupPayload:
    email: str
    password: str
    firstname: str
    lastname: str
    phone: Optional[str] = None
    dob: Optional[date] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SignupPayload":
        email = _email(data)
        password = _password(data, "password")
        firstname = _text(data, "firstname")
        lastname = _text(data, "lastname")
        if not firstname or not lastname:
            raise BadRequest("firstname and lastname are required.")
        return cls(
            email=email,
            password=password,
            firstname=firstname,
            lastname=lastname,
            phone=_text(data, "phone") or None,
            dob=_date(data, "dob"),
        )


@dataclass(frozen=True)
class LoginPayload:
    email: str
    password: str

    @classmethod
    def from_dict(cls, data: dict) -> "LoginPayload":
        email = normalize_email(_text(data, "email"))
        password = data.get("password")
        if not email or not isinstance(password, str) or not password:
            raise BadRequest("Email and password are required.")
        return cls(email=email, password=password)


@dataclass(frozen=True)
class EmailPayload:
    email: str

    @classmethod
    def from_dict(cls, data: dict) -> "EmailPayload":
        return cls(email=_email(data))


@dataclass(frozen=True)
class ResetPasswordPayload:
    token: str
    new_password: str

    @classmethod
    def from_dict(cls, data: dict) -> "ResetPasswordPayload":
        token = _text(data, "token")
        if not token:
            raise BadRequest("token is required.")
        return cls(token=token, new_password=_password(data, "new_password"))


@dataclass(frozen=True)
class UserUpdatePayload:
    """Profile fields a user may change on their own account."""

    changes: dict = field(default_factory=dict)

    FIELDS = ("firstname", "lastname", "phone", "dob")

    @classmethod
    def from_dict(cls, data: dict) -> "UserUpdatePayload":
        changes: dict = {}
        for key in ("firstname", "lastname"):
            if key in data:
                value = _text(data, key)
                if not value:
                    raise BadRequest(f"{key} must not be empty.")
                changes[key] = value
        if "phone" in data:
            changes["phone"] = _text(data, "phone") or None
        if "dob" in data:
            changes["dob"] = _date(data, "dob")
        if not changes:
            raise BadRequest(
                "Nothing to update. Updatable fields: {}.".format(", ".join(cls.FIELDS))
            )
        return cls(changes=changes)


@dataclass(frozen=True)
class EquipmentPayload:
    """Equipment fields from a create (full) or update (partial) request."""

    changes: dict = field(default_factory=dict)

    REQUIRED = ("name", "description", "category", "use_cases")
    TEXT_FIELDS = ("name", "description", "category", "specification", "use_cases")

    @classmethod
    def from_dict(cls, data: dict, partial: bool = False) -> "EquipmentPayload":
        # Accept the camelCase spelling used by older clients.
        if "useCases" in data and "use_cases" not in data:
            data = dict(data, use_cases=data["useCases"])

        changes: dict = {}
        for key in cls.TEXT_FIELDS:
            if key in data:
                changes[key] = _text(data, key) or None

        errors = []
        for key in cls.REQUIRED:
            if partial and key not in changes:
                continue
            if not changes.get(key):
                errors.append(f"{key} is required")
        if errors:
            raise BadRequest("; ".join(errors))

        if "tags" in data:
            changes["tags"] = _string_list(data.get("tags"), "tags")
        elif not partial:
            changes["tags"] = []
        return cls(changes=changes)
