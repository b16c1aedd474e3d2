# backend/supplytrack/routes/usage.py
"""
Usage Ledger API Routes

- GET  /api/usage/limits        - Tier, used/limit/remaining, upgrade hints
- POST /api/usage/redeem-promo  - Redeem a promo code for extra QR capacity
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import usage_service
from ..validation import get_json_payload


usage_bp = Blueprint("usage", __name__, url_prefix="/api/usage")


@usage_bp.get("/limits")
@require_auth
def check_limits_route():
    return jsonify(usage_service.check_limits(g.current_user.id)), 200


@usage_bp.post("/redeem-promo")
@require_auth
def redeem_promo_route():
    """
    Request body:
        {"code": "LAUNCH50"}

    Error responses:
        400: Invalid / expired / exhausted / already redeemed
    """
    payload = get_json_payload(request)
    return jsonify(usage_service.redeem_promo(g.current_user.id, payload.get("code"))), 200
