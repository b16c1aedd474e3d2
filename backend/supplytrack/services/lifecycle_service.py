# Overview: Product finalization state machine; finalize and pre-finalization delete.

"""
Product Lifecycle Service

================================================================================
PURPOSE: Enforce production -> live for tracked products
================================================================================

STATE MACHINE:
    PRODUCTION -> LIVE (finalized)

    PRODUCTION: checkpoints can be added/removed, product can be deleted
                (deleting refunds one unit of QR quota)
    LIVE:       terminal. is_finalized = true, finalized_at stamped,
                checkpoint history is immutable and publicly verifiable

RULES (NON-NEGOTIABLE):
1. Only PRODUCTION -> LIVE exists. There is no way back.
2. finalize is one-shot: a second call fails with "already finalized".
3. The transition is a single conditional UPDATE, so two concurrent
   finalize calls cannot both succeed.

================================================================================
"""

from __future__ import annotations

from typing import Literal

from flask import current_app
from sqlalchemy import update

from ..errors import ForbiddenError, LifecycleError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from . import batch_service, usage_service
from .checkpoint_service import count_checkpoints
from .concurrency import atomic, lock_for_update
from supplytrack.time_utils import to_utc_z, utcnow
from supplytrack.validation import require_fields


VALID_MODES = {"production", "live"}
ProductMode = Literal["production", "live"]


def validate_mode(mode: str) -> None:
    if mode not in VALID_MODES:
        raise LifecycleError(
            f"Invalid mode '{mode}'. Must be one of: {', '.join(sorted(VALID_MODES))}"
        )


def can_transition(from_mode: str, to_mode: str) -> bool:
    """
    Valid transitions:
    - production -> live

    Everything else (live -> production, live -> live) is rejected.
    """
    validate_mode(from_mode)
    validate_mode(to_mode)
    return (from_mode, to_mode) == ("production", "live")


def _load_owned_product(user_id: int, product_id: str, action: str) -> Product:
    product = db.session.query(Product).filter_by(product_id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    if product.user_id != user_id:
        raise ForbiddenError(f"You do not have permission to {action} this product")
    return product


def finalize_product(user_id: int, payload: dict) -> dict:
    """
    Move a product from production to live.

    Raises:
        NotFoundError: unknown product
        ForbiddenError: product owned by someone else
        LifecycleError: already finalized, or not in production mode
    """
    require_fields(payload, "productId", message="Product ID is required")
    product_id = str(payload["productId"]).strip()

    product = _load_owned_product(user_id, product_id, "finalize")

    if product.is_finalized:
        raise LifecycleError("Product is already finalized")
    if not can_transition(product.mode, "live"):
        raise LifecycleError("Product is not in production mode")

    finalized_at = utcnow()
    with atomic():
        result = db.session.execute(
            update(Product)
            .where(
                Product.id == product.id,
                Product.mode == "production",
                Product.is_finalized.is_(False),
            )
            .values(mode="live", is_finalized=True, finalized_at=finalized_at)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise LifecycleError("Product is already finalized")
        total_checkpoints = count_checkpoints(product.id)

    current_app.logger.info(
        "Finalized product %s with %d checkpoints", product_id, total_checkpoints
    )

    return {
        "success": True,
        "message": "Product finalized and now live",
        "product": {
            "productId": product_id,
            "mode": "live",
            "isFinalized": True,
            "finalizedAt": to_utc_z(finalized_at),
        },
        "supplyChain": {"totalCheckpoints": total_checkpoints},
    }


def delete_production_product(user_id: int, payload: dict) -> dict:
    """
    Delete a product that has not been finalized, with its checkpoints,
    and refund one unit of the owner's QR quota.

    A batch member goes through the batch removal path so leadership and
    quantity stay consistent.
    """
    require_fields(payload, "productId", message="Product ID is required")
    product_id = str(payload["productId"]).strip()

    product = _load_owned_product(user_id, product_id, "delete")
    if product.mode != "production":
        raise LifecycleError("Only production mode products can be deleted")
    if product.is_finalized:
        raise LifecycleError("Cannot delete a finalized product")

    with atomic():
        if product.batch_group_id:
            batch_service.lock_batch(product.batch_group_id)
        product = lock_for_update(db.session.query(Product).filter_by(product_id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        if product.mode != "production" or product.is_finalized:
            raise LifecycleError("Cannot delete a finalized product")

        if product.batch_group_id:
            outcome = batch_service.remove_member(product)
            deleted_checkpoints = outcome["deletedCheckpoints"]
        else:
            deleted_checkpoints = batch_service.delete_product_row(product)

        usage_service.refund_one(user_id)

    current_app.logger.info(
        "Production product %s deleted with %d checkpoints; QR refunded to user %s",
        product_id, deleted_checkpoints, user_id,
    )

    return {
        "success": True,
        "message": "Production entry deleted successfully",
        "deletedCheckpoints": deleted_checkpoints,
        "qrRefunded": True,
    }


def get_product_state(product_id: str | None) -> dict:
    if not product_id or not str(product_id).strip():
        raise ValidationError("Product ID required")

    product = db.session.query(Product).filter_by(product_id=str(product_id).strip()).first()
    if product is None:
        raise NotFoundError("Product not found")

    return {
        "success": True,
        "product": {
            "productId": product.product_id,
            "mode": product.mode or "live",
            "isFinalized": bool(product.is_finalized),
            "finalizedAt": to_utc_z(product.finalized_at),
        },
    }
