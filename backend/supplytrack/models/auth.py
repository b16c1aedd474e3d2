from __future__ import annotations

from ..extensions import db
from supplytrack.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Business account: owner of products, holder of the usage ledger and
    of the rewards program settings.

    USAGE LEDGER: qr_codes_used / qr_codes_limit / subscription_tier.
    qr_codes_limit is a per-user override; NULL means "tier default".
    qr_codes_used only moves backwards on refund-on-delete or on a
    billing-cycle rollover.

    version_id is an optimistic lock: concurrent writers of the same user
    row (promo redemption, refunds) fail with StaleDataError and retry.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password (login lives outside this service)
    password_hash = db.Column(db.String(255), nullable=True)

    name = db.Column(db.String(255), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)

    subscription_tier = db.Column(db.String(32), nullable=False, default="free")
    qr_codes_used = db.Column(db.Integer, nullable=False, default=0)
    qr_codes_limit = db.Column(db.Integer, nullable=True)
    billing_cycle_start = db.Column(db.DateTime(timezone=True), nullable=True)

    # Upper-cased promo codes already redeemed by this user
    promo_codes_used = db.Column(db.JSON, nullable=False, default=list)

    rewards_enabled = db.Column(db.Boolean, nullable=False, default=False)
    points_per_claim = db.Column(db.Integer, nullable=True)
    rewards_program_name = db.Column(db.String(100), nullable=True)
    business_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "companyName": self.company_name,
            "subscriptionTier": self.subscription_tier,
            "qrCodesUsed": self.qr_codes_used,
            "qrCodesLimit": self.qr_codes_limit,
            "billingCycleStart": to_utc_z(self.billing_cycle_start),
            "createdAt": to_utc_z(self.created_at),
        }
