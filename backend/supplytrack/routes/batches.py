# backend/supplytrack/routes/batches.py
"""
Batch Group API Routes

- POST /api/batches/items         - Add an item to an existing batch
- POST /api/batches/items/delete  - Remove an item from a batch
- GET  /api/batches/items         - List the items of a batch (?batchGroupId=)

SECURITY:
- All routes require authentication
- Ownership is taken from the authenticated token (g.current_user),
  NOT from the request body
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import batch_service
from ..validation import get_json_payload


batches_bp = Blueprint("batches", __name__, url_prefix="/api/batches")


@batches_bp.post("/items")
@require_auth
def add_batch_item_route():
    """
    Add one item to a batch, cloning the leader's checkpoint history.

    Request body:
        {"batchGroupId": "...", "productName": "...", "sku": "..."?}

    Error responses:
        400: batchGroupId / productName missing
        404: Batch not found (or not owned by caller)
    """
    payload = get_json_payload(request)
    return jsonify(batch_service.add_batch_item(g.current_user.id, payload)), 200


@batches_bp.post("/items/delete")
@require_auth
def delete_batch_item_route():
    """
    Remove one item from a batch. Leadership moves to the oldest remaining
    item when the leader is removed.

    Error responses:
        400: Missing fields / item finalized
        404: Item not found
    """
    payload = get_json_payload(request)
    return jsonify(batch_service.delete_batch_item(g.current_user.id, payload)), 200


@batches_bp.get("/items")
@require_auth
def list_batch_items_route():
    batch_group_id = request.args.get("batchGroupId")
    return jsonify(batch_service.list_batch_items(g.current_user.id, batch_group_id)), 200
