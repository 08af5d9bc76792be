"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/verify-email
- POST /auth/resend-verification
- POST /auth/forgot-password
- POST /auth/reset-password

Access tokens are short-lived signed JWTs; refresh tokens are opaque
random strings stored in the database so they can be revoked.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify

from models.schemas.user import (
    EmailSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResetPasswordSchema,
    VerifyEmailSchema,
)
from utils.decorators import get_services

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
email_schema = EmailSchema()
verify_email_schema = VerifyEmailSchema()
reset_password_schema = ResetPasswordSchema()


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@bp.post("/register")
def register():
    """
    Register a new user (disabled until the email is verified).
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created, verification email queued
      409:
        description: Username or email already exists
      422:
        description: Validation error
    """
    data = register_schema.load(_payload())
    get_services().users.register(data["username"], data["email"], data["password"])
    return jsonify(
        {
            "message": "User registered successfully. Please check your email to verify your account."
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
      403:
        description: Account disabled, email verification required
    """
    data = login_schema.load(_payload())
    tokens = get_services().sessions.login(data["username"], data["password"])
    return jsonify(
        {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "token_type": "bearer",
            "expires_in": int(get_services().codec.access_ttl.total_seconds()),
        }
    ), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain a new access token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (new access token; new refresh token when rotation is enabled)
      400:
        description: Refresh token expired
      404:
        description: Refresh token not found
    """
    data = refresh_schema.load(_payload())
    tokens = get_services().sessions.refresh(data["refresh_token"])
    body = {
        "access_token": tokens.access_token,
        "token_type": "bearer",
        "expires_in": int(get_services().codec.access_ttl.total_seconds()),
    }
    if tokens.refresh_token:
        body["refresh_token"] = tokens.refresh_token
    return jsonify(body), 200


@bp.post("/logout")
def logout():
    """
    Logout: deletes the refresh token. Access tokens stay valid until they expire.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out
    """
    data = refresh_schema.load(_payload())
    message = get_services().sessions.logout(data["refresh_token"])
    return jsonify({"message": message}), 200


@bp.post("/verify-email")
def verify_email():
    """
    Verify an email address with the token sent at registration
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             token: { type: string }
    responses:
      200:
        description: Verified (or already verified)
      400:
        description: Invalid or expired token
      404:
        description: User not found
    """
    data = verify_email_schema.load(_payload())
    message = get_services().ephemeral_tokens.verify_email(data["email"], data["token"])
    return jsonify({"message": message}), 200


@bp.post("/resend-verification")
def resend_verification():
    """
    Resend the verification email (email in the body or as ?email=)
    ---
    tags:
      - Auth
    parameters:
      -  in: query
         name: email
         type: string
    responses:
      200:
        description: Sent (or already verified)
      404:
        description: Email not found
    """
    payload = _payload() or request.args.to_dict()
    data = email_schema.load(payload)
    message = get_services().ephemeral_tokens.resend_verification(data["email"])
    return jsonify({"message": message}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Send a password reset token by email
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Reset email queued
      404:
        description: Email not found
    """
    data = email_schema.load(_payload())
    message = get_services().ephemeral_tokens.forgot_password(data["email"])
    return jsonify({"message": message}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Reset the password with the emailed token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             token: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Invalid or expired reset token
      404:
        description: Email not found
    """
    data = reset_password_schema.load(_payload())
    message = get_services().ephemeral_tokens.reset_password(
        data["email"], data["token"], data["new_password"]
    )
    return jsonify({"message": message}), 200
