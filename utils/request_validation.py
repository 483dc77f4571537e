"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

from typing import Iterable

from flask import Request
from werkzeug.exceptions import BadRequest


def parse_json_request(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON body or raise a 400 error."""

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request JSON body is required.")

    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")

    if not data and not allow_empty:
        raise BadRequest("Request JSON body must not be empty.")

    _check_required(data, required_keys)
    return data


def parse_form_or_json(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the body of a JSON or form/multipart request as a plain dict.

    Repeated form fields (``tags=a&tags=b``) are returned as lists.
    """

    if req.is_json:
        return parse_json_request(
            req, required_keys=required_keys, allow_empty=allow_empty
        )

    if req.mimetype not in {"multipart/form-data", "application/x-www-form-urlencoded"}:
        raise BadRequest(
            "Request content type must be application/json or multipart/form-data."
        )

    data: dict = {}
    for key in req.form.keys():
        values = req.form.getlist(key)
        data[key] = values if len(values) > 1 else values[0]

    if not data and not req.files and not allow_empty:
        raise BadRequest("Request body must not be empty.")

    _check_required(data, required_keys)
    return data


def _check_required(data: dict, required_keys: Iterable[str] | None) -> None:
    if not required_keys:
        return
    missing = [key for key in required_keys if not data.get(key)]
    if missing:
        raise BadRequest(
            "Missing required fields: {}.".format(", ".join(sorted(missing)))
        )
