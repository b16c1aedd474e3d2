# Overview: External identifiers for products (product_id, SKU).

"""
Identifier Service

product_id: "BT-<epoch millis>-<9 base36 chars>". Opaque to clients; it is
what tracking and verification QR codes encode.

SKU: caller-supplied, or derived as the first three letters of the product
name (upper-cased) followed by the last four digits of the epoch millis.
Batch members without one follow the batch: the shared SKU, or a
sequential "-001" style suffix on the batch prefix.
"""

from __future__ import annotations

import secrets
import time

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def new_product_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"BT-{_epoch_millis()}-{suffix}"


def derive_sku(product_name: str) -> str:
    prefix = product_name.strip()[:3].upper()
    return f"{prefix}{str(_epoch_millis())[-4:]}"


def resolve_sku(sku: str | None, product_name: str) -> str:
    if sku is not None and str(sku).strip():
        return str(sku).strip()
    return derive_sku(product_name)


def batch_member_sku(sku: str | None, product_name: str, *, leader_sku: str | None,
                     same_sku: bool, prefix: str | None, position: int) -> str:
    """
    SKU for a batch member that was not given one: the leader's SKU when
    the batch shares one SKU, else "<prefix>-NNN" by position in the batch
    when the batch has a SKU prefix. Otherwise derived from the name.
    """
    if sku is None or not str(sku).strip():
        if same_sku and leader_sku:
            return leader_sku
        if prefix:
            return f"{prefix}-{position:03d}"
    return resolve_sku(sku, product_name)
