# backend/supplytrack/routes/products.py
"""
Product Lifecycle API Routes

- POST /api/products/finalize           - production -> live (one-shot)
- POST /api/products/delete-production  - Delete a production product, refund one QR
- GET  /api/products/state?id=          - PUBLIC: mode / finalization state
- GET  /api/products/timeline?productId= - PUBLIC: ordered checkpoint history
- GET  /api/products/verify?id=         - PUBLIC: verification record behind the customer QR
- GET  /api/products                    - The caller's products, batches grouped
- GET  /api/products/detail?id=         - One of the caller's products

SECURITY: finalize/delete take the acting user from the token, never
from the request body.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import catalog_service, checkpoint_service, lifecycle_service
from ..validation import get_json_payload


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("/finalize")
@require_auth
def finalize_product_route():
    """
    Finalize a production product.

    CRITICAL: Once finalized, the checkpoint history is immutable. This
    cannot be undone.

    Error responses:
        400: Already finalized / not in production mode
        403: Caller does not own the product
        404: Product not found
    """
    payload = get_json_payload(request)
    return jsonify(lifecycle_service.finalize_product(g.current_user.id, payload)), 200


@products_bp.post("/delete-production")
@require_auth
def delete_production_product_route():
    """
    Delete a production-mode product and its checkpoints; refunds one QR
    code of usage.

    Error responses:
        400: Not in production mode / finalized
        403: Caller does not own the product
        404: Product not found
    """
    payload = get_json_payload(request)
    return jsonify(lifecycle_service.delete_production_product(g.current_user.id, payload)), 200


@products_bp.get("/state")
def product_state_route():
    return jsonify(lifecycle_service.get_product_state(request.args.get("id"))), 200


@products_bp.get("/timeline")
def production_timeline_route():
    product_id = request.args.get("productId")
    return jsonify(checkpoint_service.get_production_timeline(product_id)), 200


@products_bp.get("/verify")
def verify_product_route():
    """
    Public verification record.

    Error responses:
        400: Missing product ID
        404: Product not found
    """
    return jsonify(catalog_service.verify_product(request.args.get("id"))), 200


@products_bp.get("")
@require_auth
def list_products_route():
    return jsonify(catalog_service.list_products(g.current_user.id)), 200


@products_bp.get("/detail")
@require_auth
def product_detail_route():
    product_id = request.args.get("id")
    return jsonify(catalog_service.get_owned_product(g.current_user.id, product_id)), 200
