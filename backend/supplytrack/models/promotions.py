from __future__ import annotations

from ..extensions import db
from supplytrack.time_utils import to_utc_z, utcnow


class PromoCode(db.Model):
    """
    Promo code granting a one-time bonus to a user's QR code limit.

    code is stored upper-cased. times_used only grows; max_uses=NULL means
    unlimited, expires_at=NULL means no expiry.
    """
    __tablename__ = "promo_codes"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_promo_codes_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    qr_bonus = db.Column(db.Integer, nullable=False)

    max_uses = db.Column(db.Integer, nullable=True)
    times_used = db.Column(db.Integer, nullable=False, default=0)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "qrBonus": self.qr_bonus,
            "maxUses": self.max_uses,
            "timesUsed": self.times_used,
            "expiresAt": to_utc_z(self.expires_at),
            "isActive": self.is_active,
        }
