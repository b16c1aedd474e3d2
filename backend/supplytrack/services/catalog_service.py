# Overview: Read views over products: public verification, owner detail and owner listing.

"""
Catalog Service

Read-only. Three views of the products table:

- verify_product: PUBLIC. What a consumer sees after scanning a label.
  Exposes published data only (hashes, gateway URLs, named identifiers,
  batch info); never the owner's account details beyond a display name.
- get_owned_product: the owner's detail view of one product.
- list_products: the owner's dashboard list, newest first, with each
  batch folded into a single entry led by its batch leader.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, select

from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db, pinning
from ..models import Product, ProductionScan
from ..product_metadata import ProductMetadata
from . import qr_service
from .checkpoint_service import count_checkpoints
from supplytrack.time_utils import to_utc_z


def _require_product_id(product_id) -> str:
    if not product_id or not str(product_id).strip():
        raise ValidationError("Product ID required")
    return str(product_id).strip()


def ledger_tx_url(tx_hash: str | None) -> str | None:
    if not tx_hash:
        return None
    return f"{current_app.config['LEDGER_EXPLORER_URL'].rstrip('/')}/{tx_hash}"


def photo_urls(photo_hashes) -> list[str]:
    """Gateway URLs for stored photo hashes; already-hosted URLs pass through."""
    urls = []
    for value in photo_hashes or []:
        if not isinstance(value, str) or not value:
            continue
        if value.startswith(("http://", "https://")):
            urls.append(value)
        else:
            urls.append(pinning.gateway_url(value))
    return urls


def identifiers(meta: ProductMetadata) -> dict:
    return {"gtin": meta.gtin, "serialNumber": meta.serial_number}


def batch_info(product: Product) -> dict | None:
    if not product.batch_group_id:
        return None
    if product.is_batch_group:
        quantity = product.batch_quantity
    else:
        quantity = (
            db.session.query(Product.batch_quantity)
            .filter(Product.batch_group_id == product.batch_group_id, Product.is_batch_group.is_(True))
            .scalar()
        )
    return {
        "batchGroupId": product.batch_group_id,
        "isBatchLeader": bool(product.is_batch_group),
        "batchQuantity": quantity,
    }


def verify_product(product_id) -> dict:
    """Public verification record for one product."""
    product_id = _require_product_id(product_id)

    product = db.session.query(Product).filter_by(product_id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")

    meta = ProductMetadata.from_product(product)
    owner = product.owner
    photo_hashes = [h for h in (product.photo_hashes or []) if isinstance(h, str)]
    anchored = bool(product.xrpl_tx_hash)

    return {
        "success": True,
        "product": {
            "productId": product.product_id,
            "productName": product.product_name,
            "sku": product.sku,
            "batchNumber": product.batch_number,
            "mode": product.mode,
            "isFinalized": bool(product.is_finalized),
            "finalizedAt": to_utc_z(product.finalized_at),
            "ipfsHash": product.ipfs_hash,
            "qrCodeIpfsHash": product.qr_code_ipfs_hash,
            "xrplTxHash": product.xrpl_tx_hash,
            "ipfsUrl": pinning.gateway_url(product.ipfs_hash),
            "timestamp": to_utc_z(product.created_at),
            "metadata": meta.to_dict(),
            "identifiers": identifiers(meta),
            "photoHashes": photo_hashes,
            "photos": photo_urls(photo_hashes),
            "location": product.location_data,
            "mintedBy": (owner.company_name or owner.name) if owner else None,
            "batchInfo": batch_info(product),
            "totalCheckpoints": count_checkpoints(product.id),
            "timelineUrl": f"/api/products/timeline?productId={product.product_id}",
        },
        "verified": bool(product.is_finalized),
        "verifiedOn": "XRP Ledger" if anchored else None,
        "blockchainTx": ledger_tx_url(product.xrpl_tx_hash),
    }


def get_owned_product(user_id: int, product_id) -> dict:
    product_id = _require_product_id(product_id)

    product = db.session.query(Product).filter_by(product_id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    if product.user_id != user_id:
        raise ForbiddenError("You do not have permission to view this product")

    meta = ProductMetadata.from_product(product)
    detail = product.to_dict()
    detail.update(
        {
            "ipfsHash": product.ipfs_hash,
            "qrCodeIpfsHash": product.qr_code_ipfs_hash,
            "xrplTxHash": product.xrpl_tx_hash,
            "metadata": meta.to_dict(),
            "identifiers": identifiers(meta),
            "rewardPoints": meta.reward_points,
            "photos": photo_urls(product.photo_hashes),
            "location": product.location_data,
            "totalCheckpoints": count_checkpoints(product.id),
            "ipfsUrl": pinning.gateway_url(product.ipfs_hash),
            "qrCodeUrl": pinning.gateway_url(product.qr_code_ipfs_hash),
            "blockchainUrl": ledger_tx_url(product.xrpl_tx_hash),
            "verificationUrl": qr_service.verification_url(product.product_id),
        }
    )
    return {"success": True, "product": detail}


def _list_entry(product: Product, checkpoints: int) -> dict:
    meta = ProductMetadata.from_product(product)
    return {
        "productId": product.product_id,
        "productName": product.product_name,
        "sku": product.sku,
        "batchNumber": product.batch_number,
        "mode": product.mode,
        "isFinalized": bool(product.is_finalized),
        "ipfsHash": product.ipfs_hash,
        "qrCodeIpfsHash": product.qr_code_ipfs_hash,
        "xrplTxHash": product.xrpl_tx_hash,
        "metadata": meta.to_dict(),
        "identifiers": identifiers(meta),
        "isBatchGroup": bool(product.is_batch_group),
        "batchGroupId": product.batch_group_id,
        "batchQuantity": product.batch_quantity,
        "checkpointCount": checkpoints,
        "timestamp": to_utc_z(product.created_at),
        "verificationUrl": qr_service.verification_url(product.product_id),
        "qrCodeUrl": pinning.gateway_url(product.qr_code_ipfs_hash),
    }


def list_products(user_id: int) -> dict:
    """
    The owner's products, newest first.

    Every row of a batch is folded into one group entry placed where the
    batch leader sorts; members are listed inside it oldest first. Rows
    without a batch are listed on their own.
    """
    checkpoint_count = (
        select(func.count(ProductionScan.id))
        .where(ProductionScan.product_id == Product.id)
        .correlate(Product)
        .scalar_subquery()
    )
    rows = (
        db.session.query(Product, checkpoint_count)
        .filter(Product.user_id == user_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )

    members: dict[str, list[dict]] = {}
    for product, count in reversed(rows):
        if product.batch_group_id:
            members.setdefault(product.batch_group_id, []).append(_list_entry(product, int(count or 0)))

    entries = []
    for product, count in rows:
        if not product.batch_group_id:
            entries.append(_list_entry(product, int(count or 0)))
        elif product.is_batch_group:
            batch_members = members.get(product.batch_group_id, [])
            entries.append(
                {
                    "isBatchGroup": True,
                    "batchGroupId": product.batch_group_id,
                    "productName": product.product_name,
                    "batchNumber": product.batch_number,
                    "quantity": len(batch_members),
                    "products": batch_members,
                    "timestamp": to_utc_z(product.created_at),
                }
            )

    return {"success": True, "products": entries, "count": len(entries)}
