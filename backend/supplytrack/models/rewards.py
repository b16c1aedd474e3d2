from __future__ import annotations

from ..extensions import db
from supplytrack.time_utils import to_utc_z, utcnow


class PointsClaim(db.Model):
    """
    At-most-once reward redemption.

    IMMUTABLE: one row per claim_key, ever. The unique constraint is what
    makes the first claim win when several requests race.
    """
    __tablename__ = "points_claims"
    __table_args__ = (
        db.UniqueConstraint("claim_key", name="uq_points_claims_claim_key"),
        db.Index("ix_points_claims_business_claimed", "business_id", "claimed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    claim_key = db.Column(db.String(128), nullable=False)
    claim_type = db.Column(db.String(16), nullable=False)  # batch, product

    product_id = db.Column(db.String(64), nullable=False)
    batch_group_id = db.Column(db.String(64), nullable=True)

    customer_email = db.Column(db.String(255), nullable=False, index=True)
    points_awarded = db.Column(db.Integer, nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    claimed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "claimKey": self.claim_key,
            "claimType": self.claim_type,
            "productId": self.product_id,
            "batchGroupId": self.batch_group_id,
            "customerEmail": self.customer_email,
            "pointsAwarded": self.points_awarded,
            "claimedAt": to_utc_z(self.claimed_at),
        }


class CustomerPoints(db.Model):
    """Running balance per (customer email, business)."""
    __tablename__ = "customer_points"
    __table_args__ = (
        db.UniqueConstraint("email", "business_id", name="uq_customer_points_email_business"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
