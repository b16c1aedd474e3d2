# backend/supplytrack/routes/checkpoints.py
"""
Checkpoint API Routes

- POST /api/checkpoints         - Log a checkpoint (PUBLIC: scan page)
- POST /api/checkpoints/delete  - Delete a checkpoint (owner only)

Logging is public on purpose: anyone holding the physical QR code can
report a handling step while the product is still in production.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import checkpoint_service
from ..validation import get_json_payload


checkpoints_bp = Blueprint("checkpoints", __name__, url_prefix="/api/checkpoints")


@checkpoints_bp.post("")
def log_checkpoint_route():
    """
    Request body:
        {
            "productId": "BT-...",
            "scannedByName": "...", "scannedByRole": "...",
            "latitude": 0.0?, "longitude": 0.0?,
            "locationName": "..."?, "notes": "..."?,
            "photos": ["data:image/jpeg;base64,..."]?
        }

    Error responses:
        400: Missing fields / not in production / finalized
        404: Product not found
    """
    payload = get_json_payload(request)
    result = checkpoint_service.log_checkpoint(
        payload,
        ip_address=checkpoint_service.client_ip(request),
    )
    return jsonify(result), 200


@checkpoints_bp.post("/delete")
@require_auth
def delete_checkpoint_route():
    payload = get_json_payload(request)
    return jsonify(checkpoint_service.delete_checkpoint(g.current_user.id, payload)), 200
