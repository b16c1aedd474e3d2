# backend/supplytrack/routes/rewards.py
"""
Rewards API Routes

- POST /api/rewards/claim        - PUBLIC: claim points for a product/batch
- GET  /api/rewards/settings     - Business rewards program settings
- POST /api/rewards/settings     - Update rewards program settings
- GET  /api/rewards/leaderboard  - Top customers and recent claims
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import rewards_service
from ..validation import get_json_payload


rewards_bp = Blueprint("rewards", __name__, url_prefix="/api/rewards")


@rewards_bp.post("/claim")
def claim_points_route():
    """
    Request body:
        {"productId": "BT-...", "email": "...", "batchGroupId": "..."?}

    Error responses:
        400: Already claimed / rewards disabled / bad email / batch mismatch
        404: Product not found
    """
    payload = get_json_payload(request)
    return jsonify(rewards_service.claim_points(payload)), 200


@rewards_bp.get("/settings")
@require_auth
def get_settings_route():
    return jsonify(rewards_service.get_settings(g.current_user.id)), 200


@rewards_bp.post("/settings")
@require_auth
def update_settings_route():
    payload = get_json_payload(request)
    return jsonify(rewards_service.update_settings(g.current_user.id, payload)), 200


@rewards_bp.get("/leaderboard")
@require_auth
def leaderboard_route():
    return jsonify(rewards_service.leaderboard(g.current_user.id)), 200
