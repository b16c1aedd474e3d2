# Overview: Batch membership: add/remove members, leadership transfer, quantity accounting.

"""
Batch Service

A batch is every product row sharing a batch_group_id.

INVARIANTS (hold after every committed operation):
1. A non-empty batch has exactly one leader (is_batch_group = true).
2. leader.batch_quantity == number of rows in the batch.
3. A batch with no rows simply stops existing; nothing else references
   its batch_group_id.

Membership changes lock the batch rows, write, recount and commit in a
single transaction. Leadership moves with one UPDATE that picks the
earliest remaining member (created_at, then id) and stamps the new count.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import delete, func, select, update

from ..errors import LifecycleError, NotFoundError, ValidationError
from ..extensions import db, pinning
from ..models import Product, ProductionScan
from ..product_metadata import ProductMetadata
from . import identifier_service, qr_service
from .concurrency import atomic, lock_for_update
from supplytrack.validation import optional_str, require_fields
from supplytrack.time_utils import to_utc_z


CLONED_SCAN_FIELDS = (
    "scanned_at",
    "latitude",
    "longitude",
    "location_name",
    "notes",
    "photos",
    "scanned_by_name",
    "scanned_by_role",
)


def get_leader(batch_group_id: str, user_id: int | None = None, *, for_update: bool = False) -> Product | None:
    q = db.session.query(Product).filter(
        Product.batch_group_id == batch_group_id,
        Product.is_batch_group.is_(True),
    )
    if user_id is not None:
        q = q.filter(Product.user_id == user_id)
    if for_update:
        q = lock_for_update(q)
    return q.order_by(Product.id.asc()).first()


def lock_batch(batch_group_id: str) -> list[Product]:
    """Lock every row of the batch (in id order) for the rest of the transaction."""
    return (
        lock_for_update(db.session.query(Product).filter(Product.batch_group_id == batch_group_id))
        .order_by(Product.id.asc())
        .all()
    )


def refresh_batch_quantity(batch_group_id: str) -> None:
    """leader.batch_quantity := live member count."""
    members = Product.__table__.alias("members")
    member_count = (
        select(func.count())
        .select_from(members)
        .where(members.c.batch_group_id == batch_group_id)
        .scalar_subquery()
    )
    db.session.execute(
        update(Product)
        .where(Product.batch_group_id == batch_group_id, Product.is_batch_group.is_(True))
        .values(batch_quantity=member_count)
        .execution_options(synchronize_session="fetch")
    )


def promote_next_leader(batch_group_id: str, *, departing_id: int) -> bool:
    """
    Make the earliest remaining member (other than ``departing_id``) the
    leader, with batch_quantity set to the remaining count.

    Single statement; returns False when no other member exists.
    """
    candidates = Product.__table__.alias("candidates")
    remaining = Product.__table__.alias("remaining")

    next_leader_id = (
        select(candidates.c.id)
        .where(candidates.c.batch_group_id == batch_group_id, candidates.c.id != departing_id)
        .order_by(candidates.c.created_at.asc(), candidates.c.id.asc())
        .limit(1)
        .scalar_subquery()
    )
    remaining_count = (
        select(func.count())
        .select_from(remaining)
        .where(remaining.c.batch_group_id == batch_group_id, remaining.c.id != departing_id)
        .scalar_subquery()
    )

    result = db.session.execute(
        update(Product)
        .where(Product.id == next_leader_id)
        .values(is_batch_group=True, batch_quantity=remaining_count)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def delete_product_row(product: Product) -> int:
    """Delete a product's checkpoints, then the product. Returns checkpoints removed."""
    removed = db.session.execute(
        delete(ProductionScan)
        .where(ProductionScan.product_id == product.id)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.delete(product)
    db.session.flush()
    return removed or 0


def remove_member(item: Product) -> dict:
    """
    Remove ``item`` from its batch inside the caller's transaction.

    Order: promote a successor if the item leads a batch with other
    members, delete the item's checkpoints and row, then recount.
    """
    batch_group_id = item.batch_group_id
    promoted = False

    if batch_group_id and item.is_batch_group:
        promoted = promote_next_leader(batch_group_id, departing_id=item.id)

    removed_checkpoints = delete_product_row(item)

    if batch_group_id:
        refresh_batch_quantity(batch_group_id)

    return {"leaderTransferred": promoted, "deletedCheckpoints": removed_checkpoints}


def add_batch_item(user_id: int, payload: dict) -> dict:
    """
    Add one member to an existing batch.

    The new member copies the leader's descriptive data and every one of
    the leader's checkpoints (same scanned_at), so its history starts where
    the batch's journey currently is.
    """
    require_fields(payload, "batchGroupId", "productName", message="batchGroupId and productName are required")
    batch_group_id = str(payload["batchGroupId"]).strip()
    product_name = str(payload["productName"]).strip()

    if get_leader(batch_group_id, user_id) is None:
        raise NotFoundError("Batch not found")

    product_id = identifier_service.new_product_id()

    # External step first: nothing local is written if pinning fails
    qr_png = qr_service.render_png(qr_service.scan_url(product_id))
    qr_hash = pinning.pin_file(qr_png, f"tracking-qr-{product_id}.png", "image/png")

    with atomic():
        rows = lock_batch(batch_group_id)
        leader = get_leader(batch_group_id, user_id)
        if leader is None:
            raise NotFoundError("Batch not found")

        leader_meta = ProductMetadata.from_product(leader)
        sku = identifier_service.batch_member_sku(
            payload.get("sku"),
            product_name,
            leader_sku=leader.sku,
            same_sku=leader_meta.same_sku,
            prefix=leader_meta.batch_sku_prefix,
            position=len(rows) + 1,
        )

        item = Product(
            product_id=product_id,
            user_id=user_id,
            product_name=product_name,
            sku=sku,
            batch_number=optional_str(payload.get("batchNumber")) or leader.batch_number,
            qr_code_ipfs_hash=qr_hash,
            product_metadata=leader_meta.to_dict(),
            photo_hashes=leader.photo_hashes,
            location_data=leader.location_data,
            is_batch_group=False,
            batch_group_id=batch_group_id,
            batch_quantity=1,
            mode="production",
            is_finalized=False,
        )
        db.session.add(item)
        db.session.flush()

        leader_scans = (
            db.session.query(ProductionScan)
            .filter(ProductionScan.product_id == leader.id)
            .order_by(ProductionScan.scanned_at.asc(), ProductionScan.id.asc())
            .all()
        )
        for scan in leader_scans:
            clone = ProductionScan(product_id=item.id)
            for field in CLONED_SCAN_FIELDS:
                setattr(clone, field, getattr(scan, field))
            db.session.add(clone)

        db.session.flush()
        refresh_batch_quantity(batch_group_id)

    current_app.logger.info(
        "Added %s to batch %s with %d inherited checkpoints", product_id, batch_group_id, len(leader_scans)
    )

    return {
        "success": True,
        "message": "Item added to batch",
        "item": {
            "productId": product_id,
            "productName": product_name,
            "sku": sku,
            "checkpointCount": len(leader_scans),
            "qrCodeUrl": pinning.gateway_url(qr_hash),
        },
    }


def delete_batch_item(user_id: int, payload: dict) -> dict:
    """
    Remove one member of the caller's batch.

    Finalized members keep their history and cannot be removed here.
    """
    require_fields(payload, "productId", "batchGroupId", message="productId and batchGroupId are required")
    product_id = str(payload["productId"]).strip()
    batch_group_id = str(payload["batchGroupId"]).strip()

    with atomic():
        rows = lock_batch(batch_group_id)
        if not rows:
            return {"success": True, "message": "Batch is already empty", "removed": False}

        item = next(
            (r for r in rows if r.product_id == product_id and r.user_id == user_id),
            None,
        )
        if item is None:
            raise NotFoundError("Item not found")
        if item.is_finalized:
            raise LifecycleError("Cannot remove a finalized item from a batch")

        outcome = remove_member(item)

    current_app.logger.info("Removed %s from batch %s", product_id, batch_group_id)

    return {
        "success": True,
        "message": "Item removed from batch",
        "removed": True,
        **outcome,
    }


def list_batch_items(user_id: int, batch_group_id: str | None) -> dict:
    if not batch_group_id or not str(batch_group_id).strip():
        raise ValidationError("batchGroupId is required")

    checkpoint_count = (
        select(func.count(ProductionScan.id))
        .where(ProductionScan.product_id == Product.id)
        .correlate(Product)
        .scalar_subquery()
    )
    rows = (
        db.session.query(Product, checkpoint_count)
        .filter(Product.batch_group_id == str(batch_group_id).strip(), Product.user_id == user_id)
        .order_by(Product.created_at.asc(), Product.id.asc())
        .all()
    )

    items = [
        {
            "id": p.id,
            "productId": p.product_id,
            "productName": p.product_name,
            "sku": p.sku,
            "batchNumber": p.batch_number,
            "isBatchLeader": p.is_batch_group,
            "batchQuantity": p.batch_quantity if p.is_batch_group else None,
            "mode": p.mode,
            "isFinalized": p.is_finalized,
            "createdAt": to_utc_z(p.created_at),
            "checkpointCount": int(count or 0),
        }
        for p, count in rows
    ]
    return {"success": True, "items": items, "count": len(items)}
