from __future__ import annotations

from ..extensions import db
from supplytrack.time_utils import to_utc_z, utcnow


PRODUCT_MODES = ("production", "live")


class Product(db.Model):
    """
    One manufactured item, or one member of a batch.

    BATCHES: rows sharing a non-null batch_group_id form a batch. Exactly one
    of them has is_batch_group=True (the leader) and its batch_quantity is
    the live member count. Member rows carry batch_quantity=1.

    product_id is the opaque external identifier printed in QR codes; id is
    the surrogate key checkpoints point at.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_products_product_id"),
        db.Index("ix_products_batch_group", "batch_group_id", "is_batch_group"),
        db.Index("ix_products_user_id", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(128), nullable=True)
    batch_number = db.Column(db.String(128), nullable=True)

    mode = db.Column(db.String(16), nullable=False, default="production")
    is_finalized = db.Column(db.Boolean, nullable=False, default=False)
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # "metadata" is reserved on declarative classes
    product_metadata = db.Column("metadata", db.JSON, nullable=True)
    photo_hashes = db.Column(db.JSON, nullable=True)
    location_data = db.Column(db.JSON, nullable=True)

    qr_code_ipfs_hash = db.Column(db.String(128), nullable=True)
    ipfs_hash = db.Column(db.String(128), nullable=True)
    xrpl_tx_hash = db.Column(db.String(128), nullable=True)

    is_batch_group = db.Column(db.Boolean, nullable=False, default=False)
    batch_group_id = db.Column(db.String(64), nullable=True)
    batch_quantity = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    owner = db.relationship("User", backref=db.backref("products", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "sku": self.sku,
            "batchNumber": self.batch_number,
            "mode": self.mode,
            "isFinalized": self.is_finalized,
            "finalizedAt": to_utc_z(self.finalized_at),
            "isBatchLeader": self.is_batch_group,
            "batchGroupId": self.batch_group_id,
            "batchQuantity": self.batch_quantity,
            "createdAt": to_utc_z(self.created_at),
        }


class ProductionScan(db.Model):
    """
    One custody/location checkpoint.

    APPEND-ONLY: rows are inserted while the owning product is in production
    and never updated. They are removed one by one only before finalization,
    or all together when the owning product row is deleted.

    product_id references products.id (the surrogate key), not the external
    product identifier.
    """
    __tablename__ = "production_scans"
    __table_args__ = (
        db.Index("ix_production_scans_product_scanned", "product_id", "scanned_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    location_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photos = db.Column(db.JSON, nullable=True)

    scanned_by_name = db.Column(db.String(255), nullable=False)
    scanned_by_role = db.Column(db.String(128), nullable=False)
    ip_address = db.Column(db.String(64), nullable=True)

    product = db.relationship("Product", backref=db.backref("scans", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scannedAt": to_utc_z(self.scanned_at),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "locationName": self.location_name,
            "notes": self.notes,
            "photos": self.photos or [],
            "scannedByName": self.scanned_by_name,
            "scannedByRole": self.scanned_by_role,
        }
