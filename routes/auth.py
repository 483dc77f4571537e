"""Authentication blueprint: signup, login, token refresh, email verification and password reset."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, Conflict, NotFound, Unauthorized

from models import db
from models.user import User
from services import tokens
from services.tokens import issue_token, verify_token
from utils.auth import authenticate, current_user
from utils.errors import InvalidToken, MailDeliveryError
from utils.payloads import (
    EmailPayload,
    LoginPayload,
    ResetPasswordPayload,
    SignupPayload,
)
from utils.request_validation import parse_json_request

auth_bp = Blueprint("auth", __name__)


def _find_by_email(email: str) -> User | None:
    # Case-insensitive lookup
    return User.query.filter(func.lower(User.email) == email).first()


def _send(kind: str, user: User, token: str) -> None:
    current_app.extensions["mailer"].send(kind, user.email, token)


@auth_bp.route("/signup", methods=["POST"])
def signup() -> tuple:
    """Create an unverified account and email a verification link."""
    payload = SignupPayload.from_dict(parse_json_request(request))

    if _find_by_email(payload.email) is not None:
        raise Conflict("A user with that email already exists.")

    user = User(
        email=payload.email,
        firstname=payload.firstname,
        lastname=payload.lastname,
        phone=payload.phone,
        dob=payload.dob,
        role="user",
        is_verified=False,
    )
    user.set_password(payload.password)
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A user with that email already exists.")

    # The row is only kept when the verification mail goes out.
    try:
        _send("verify_email", user, issue_token(user, tokens.VERIFY_EMAIL))
    except MailDeliveryError:
        db.session.rollback()
        raise
    db.session.commit()

    current_app.logger.info("User %s signed up", user.email)
    return (
        jsonify(
            {
                "message": "User registered, check your email for verification.",
                "user": user.to_dict(),
            }
        ),
        HTTPStatus.CREATED,
    )


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple:
    """Authenticate a verified user and return access and refresh tokens."""
    payload = LoginPayload.from_dict(parse_json_request(request))

    user = _find_by_email(payload.email)
    if user is None:
        current_app.logger.warning("Login attempt for unknown email %s", payload.email)
        raise Unauthorized("Invalid email or password.")

    if not user.is_verified:
        raise BadRequest("Please verify your email.")

    if not user.check_password(payload.password):
        current_app.logger.warning("Invalid password for %s", payload.email)
        raise Unauthorized("Invalid email or password.")

    current_app.logger.info("User %s logged in", user.email)
    return (
        jsonify(
            {
                "access_token": issue_token(user, tokens.ACCESS),
                "refresh_token": issue_token(user, tokens.REFRESH),
                "user": user.to_dict(),
            }
        ),
        HTTPStatus.OK,
    )


@auth_bp.route("/refresh", methods=["POST"])
def refresh() -> tuple:
    """Mint a new access token from a refresh token."""
    data = parse_json_request(request, required_keys=["refresh_token"])
    claims = verify_token(data["refresh_token"], tokens.REFRESH)

    user = db.session.get(User, tokens.user_id_from_claims(claims))
    if user is None:
        raise Unauthorized("User no longer exists.")

    return jsonify({"access_token": issue_token(user, tokens.ACCESS)}), HTTPStatus.OK


@auth_bp.route("/verify/<token>", methods=["GET"])
def verify_email(token: str) -> tuple:
    """Mark the token's user as verified."""
    claims = verify_token(token, tokens.VERIFY_EMAIL)
    user = db.session.get(User, tokens.user_id_from_claims(claims))
    if user is None:
        raise InvalidToken()
    if user.is_verified:
        raise Conflict("User already verified.")

    user.mark_verified()
    db.session.commit()

    current_app.logger.info("User %s verified their email", user.email)
    return jsonify({"message": "Email verified, you can now login."}), HTTPStatus.OK


@auth_bp.route("/resend-verification", methods=["POST"])
def resend_verification() -> tuple:
    payload = EmailPayload.from_dict(parse_json_request(request))
    user = _find_by_email(payload.email)
    if user is None:
        raise NotFound("User not found.")
    if user.is_verified:
        raise Conflict("User already verified.")

    _send("verify_email", user, issue_token(user, tokens.VERIFY_EMAIL))
    return jsonify({"message": "Verification email resent."}), HTTPStatus.OK


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password() -> tuple:
    """Email a short-lived password reset link."""
    payload = EmailPayload.from_dict(parse_json_request(request))
    user = _find_by_email(payload.email)
    if user is None:
        raise NotFound("User not found.")

    _send("reset_password", user, issue_token(user, tokens.RESET_PASSWORD))
    current_app.logger.info("Password reset requested for %s", user.email)
    return jsonify({"message": "Password reset link sent to email."}), HTTPStatus.OK


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password() -> tuple:
    """Set a new password using a reset token. Each token works once."""
    payload = ResetPasswordPayload.from_dict(parse_json_request(request))
    claims = verify_token(payload.token, tokens.RESET_PASSWORD)

    user = db.session.get(User, tokens.user_id_from_claims(claims))
    if user is None:
        raise NotFound("User not found.")
    if claims.get("pwd") != tokens.password_fingerprint(user.password_hash):
        raise InvalidToken("This reset link has already been used.")

    user.set_password(payload.new_password)
    db.session.commit()

    current_app.logger.info("Password reset for %s", user.email)
    return jsonify({"message": "Password reset successful."}), HTTPStatus.OK


@auth_bp.route("/me", methods=["GET"])
@authenticate
def me() -> tuple:
    return jsonify(current_user.to_dict()), HTTPStatus.OK
