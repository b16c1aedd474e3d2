# Overview: Typed view over the product metadata JSON bag.

from __future__ import annotations

import re
from typing import Any, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value: Any) -> Optional[int]:
    """
    Parse an integer the way the dashboard stores it.

    15 -> 15, "15" -> 15, "15 pts" -> 15, 15.9 -> 15, "abc" -> None.
    Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        if m:
            return int(m.group(1))
    return None


class ProductMetadata:
    """
    Named accessors for the keys the service reads, with every other key
    kept as-is so that to_dict() round-trips the stored bag.
    """

    KNOWN_KEYS = ("rewardPoints", "gtin", "serialNumber", "sameSku", "batchSkuPrefix")

    def __init__(self, raw: dict | None = None):
        raw = dict(raw or {})
        self._known = {k: raw.pop(k) for k in self.KNOWN_KEYS if k in raw}
        self.extra: dict = raw

    @classmethod
    def from_product(cls, product) -> "ProductMetadata":
        raw = product.product_metadata
        if not isinstance(raw, dict):
            raw = {}
        return cls(raw)

    @property
    def reward_points(self) -> Optional[int]:
        """Per-product points override; None unless it parses to a positive integer."""
        points = parse_leading_int(self._known.get("rewardPoints"))
        if points is None or points <= 0:
            return None
        return points

    @property
    def gtin(self) -> Optional[str]:
        value = self._known.get("gtin")
        return str(value) if value not in (None, "") else None

    @property
    def serial_number(self) -> Optional[str]:
        value = self._known.get("serialNumber")
        return str(value) if value not in (None, "") else None

    @property
    def same_sku(self) -> bool:
        return bool(self._known.get("sameSku", False))

    @property
    def batch_sku_prefix(self) -> Optional[str]:
        return self._known.get("batchSkuPrefix")

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._known:
            return self._known[key]
        return self.extra.get(key, default)

    def to_dict(self) -> dict:
        out = dict(self.extra)
        out.update(self._known)
        return out
