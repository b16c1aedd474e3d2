# Overview: Checkpoint ledger: append, delete (pre-finalization), timeline reads.

"""
Checkpoint Service

Checkpoints (production_scans) are append-only custody events. They can
be added or removed only while the owning product is in production and
not finalized; the product row is locked while that state is checked and
the write happens, so a concurrent finalize cannot slip in between.

Photos are pinned one at a time before anything is written. A photo that
fails to decode or pin is logged and left out; the checkpoint is still
recorded with the photos that made it.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import ExternalServiceError, ForbiddenError, LifecycleError, NotFoundError, ValidationError
from ..extensions import db, pinning
from ..models import Product, ProductionScan
from . import qr_service
from .concurrency import atomic, lock_for_update
from .pinning_service import decode_photo, photo_filename
from supplytrack.time_utils import to_utc_z
from supplytrack.validation import coerce_float, coerce_int, optional_str, require_fields


def count_checkpoints(product_pk: int) -> int:
    return (
        db.session.query(func.count(ProductionScan.id))
        .filter(ProductionScan.product_id == product_pk)
        .scalar()
        or 0
    )


def ensure_accepts_checkpoints(product: Product) -> None:
    if product.mode != "production":
        raise LifecycleError("Product is not in production mode")
    if product.is_finalized:
        raise LifecycleError("Product has been finalized and cannot be updated")


def client_ip(request) -> str | None:
    """First hop of X-Forwarded-For, else the socket peer. Best effort."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:64]
    return request.remote_addr


def pin_photos(product_id: str, photos) -> tuple[list[str], int]:
    """
    Pin each photo independently. Returns (urls, skipped_count).

    Already-hosted http(s) URLs are kept as they are.
    """
    if not photos:
        return [], 0
    if not isinstance(photos, list):
        raise ValidationError("photos must be a list")

    urls: list[str] = []
    skipped = 0
    for index, photo in enumerate(photos):
        if isinstance(photo, str) and photo.startswith(("http://", "https://")):
            urls.append(photo)
            continue
        try:
            content, content_type = decode_photo(photo)
            ipfs_hash = pinning.pin_file(content, photo_filename(product_id, index, content_type), content_type)
        except (ValueError, ExternalServiceError) as exc:
            skipped += 1
            current_app.logger.warning(
                "Skipping checkpoint photo %d for %s: %s", index + 1, product_id, exc
            )
            continue
        urls.append(pinning.gateway_url(ipfs_hash))
    return urls, skipped


def log_checkpoint(payload: dict, *, ip_address: str | None = None) -> dict:
    """Append one checkpoint to a product that is still in production."""
    require_fields(payload, "productId", message="Product ID is required")
    require_fields(payload, "scannedByName", "scannedByRole", message="Name and role are required")

    product_id = str(payload["productId"]).strip()
    latitude = coerce_float(payload.get("latitude"), "latitude")
    longitude = coerce_float(payload.get("longitude"), "longitude")

    product = db.session.query(Product).filter_by(product_id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    ensure_accepts_checkpoints(product)

    photo_urls, skipped = pin_photos(product_id, payload.get("photos"))

    with atomic():
        product = lock_for_update(db.session.query(Product).filter_by(product_id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        ensure_accepts_checkpoints(product)

        scan = ProductionScan(
            product_id=product.id,
            latitude=latitude,
            longitude=longitude,
            location_name=optional_str(payload.get("locationName"), 255),
            notes=optional_str(payload.get("notes")),
            photos=photo_urls or None,
            scanned_by_name=optional_str(payload["scannedByName"], 255),
            scanned_by_role=optional_str(payload["scannedByRole"], 128),
            ip_address=ip_address,
        )
        db.session.add(scan)
        db.session.flush()
        total = count_checkpoints(product.id)
        scan_data = scan.to_dict()

    return {
        "success": True,
        "message": "Checkpoint logged successfully",
        "scan": scan_data,
        "totalCheckpoints": total,
        "photosSkipped": skipped,
    }


def delete_checkpoint(user_id: int, payload: dict) -> dict:
    """Owner removes one checkpoint of a product that is not finalized."""
    require_fields(payload, "scanId", message="Scan ID is required")
    scan_id = coerce_int(payload["scanId"], "scanId", minimum=1)

    with atomic():
        row = (
            db.session.query(ProductionScan, Product)
            .join(Product, ProductionScan.product_id == Product.id)
            .filter(ProductionScan.id == scan_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Checkpoint not found")
        scan, product = row

        if product.user_id != user_id:
            raise ForbiddenError("You do not have permission to delete this checkpoint")

        product = lock_for_update(db.session.query(Product).filter_by(id=product.id)).first()
        if product.is_finalized:
            raise LifecycleError("Cannot delete checkpoints from a finalized product")

        db.session.delete(scan)
        db.session.flush()
        remaining = count_checkpoints(product.id)
        external_id = product.product_id

    current_app.logger.info("Checkpoint %s deleted for product %s by user %s", scan_id, external_id, user_id)
    return {
        "success": True,
        "message": "Checkpoint deleted successfully",
        "totalCheckpoints": remaining,
    }


def get_production_timeline(product_id: str | None) -> dict:
    """Public timeline: product summary plus checkpoints in scan order."""
    if not product_id or not str(product_id).strip():
        raise ValidationError("Product ID is required")

    product = db.session.query(Product).filter_by(product_id=str(product_id).strip()).first()
    if product is None:
        raise NotFoundError("Product not found")

    scans = (
        db.session.query(ProductionScan)
        .filter(ProductionScan.product_id == product.id)
        .order_by(ProductionScan.scanned_at.asc(), ProductionScan.id.asc())
        .all()
    )
    checkpoints = []
    for step, scan in enumerate(scans, start=1):
        entry = scan.to_dict()
        entry["step"] = step
        checkpoints.append(entry)

    owner = product.owner
    return {
        "success": True,
        "product": {
            "productId": product.product_id,
            "productName": product.product_name,
            "sku": product.sku,
            "batchNumber": product.batch_number,
            "mode": product.mode,
            "isFinalized": product.is_finalized,
            "finalizedAt": to_utc_z(product.finalized_at),
            "createdAt": to_utc_z(product.created_at),
            "ownerName": (owner.name or owner.company_name) if owner else None,
            "verificationUrl": qr_service.verification_url(product.product_id),
            "qrCodeUrl": pinning.gateway_url(product.qr_code_ipfs_hash),
        },
        "timeline": {
            "totalCheckpoints": len(checkpoints),
            "checkpoints": checkpoints,
        },
    }
