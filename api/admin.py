from __future__ import annotations

from flask import Blueprint, request, jsonify

from models.schemas.user import AddRoleSchema, ProfileOutSchema
from utils.decorators import admin_required, current_identity, get_services

bp = Blueprint("admin", __name__)

add_role_schema = AddRoleSchema()
profile_out_schema = ProfileOutSchema()


@bp.post("/users/<username>/roles")
@admin_required()
def add_role(username: str):
    """
    Admin-only: add a role to a user.
    Body: { "role": "MODERATOR" }
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: username
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string }
    responses:
      200: { description: OK }
      403: { description: Admin role required }
      404: { description: User or role not found }
    """
    data = add_role_schema.load(request.get_json(silent=True) or {})
    user = get_services().users.add_role(username, data["role"])
    return jsonify({"data": profile_out_schema.dump(user)}), 200


@bp.delete("/users/<username>/sessions")
@admin_required()
def revoke_sessions(username: str):
    """
    Admin-only: delete the user's refresh token, forcing a new login
    once outstanding access tokens expire.
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: username
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: User not found }
    """
    services = get_services()
    user = services.users.get_profile(username)
    removed = services.refresh_tokens.delete_by_user(user)
    return jsonify({"message": f"Revoked {removed} session(s) for user {username}"}), 200


@bp.get("/whoami")
@admin_required()
def whoami():
    """
    Admin-only: echo the caller's identity and authorities
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    identity = current_identity()
    return jsonify(
        {
            "username": identity.subject,
            "authorities": sorted(identity.authorities),
        }
    ), 200
