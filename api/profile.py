from __future__ import annotations

from flask import Blueprint, request, jsonify

from models.schemas.user import ProfileOutSchema, ProfileUpdateSchema
from utils.decorators import current_identity, get_services, login_required

bp = Blueprint("profile", __name__)

profile_out_schema = ProfileOutSchema()
profile_update_schema = ProfileUpdateSchema()


@bp.get("/profile")
@login_required()
def get_profile():
    """
    Get the current user's profile
    ---
    tags:
      - Profile
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = get_services().users.get_profile(current_identity().subject)
    return jsonify({"data": profile_out_schema.dump(user)}), 200


@bp.put("/profile")
@login_required()
def update_profile():
    """
    Update the current user's profile
    ---
    tags:
      - Profile
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             email: { type: string }
             full_name: { type: string }
             bio: { type: string }
             image_url: { type: string }
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      409:
        description: Username or email already taken
    """
    changes = profile_update_schema.load(request.get_json(silent=True) or {})
    user = get_services().users.update_profile(current_identity().subject, changes)
    return jsonify({"data": profile_out_schema.dump(user)}), 200
