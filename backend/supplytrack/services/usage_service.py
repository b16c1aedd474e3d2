# Overview: Usage ledger (QR code quota) accounting: limits, refunds, promo bonuses.

"""
Usage Ledger Service

The ledger is embedded in the user row:
    qr_codes_used   - identifiers consumed in the current billing cycle
    qr_codes_limit  - per-user override (NULL -> tier default)
    subscription_tier

RULES:
1. remaining = limit - used
2. maxBatchSize = remaining. There is no separate per-tier batch ceiling;
   a batch can be as large as whatever quota is left.
3. qr_codes_used never decreases except:
   - refund on deleting an unfinalized production product (-1, floored at 0)
   - billing-cycle rollover (reset to 0)
4. A promo code adds its bonus to the limit at most once per user, and
   never beyond the code's max_uses / expiry. Both checks and the
   increments commit together or not at all.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func, or_, update

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PromoCode, User
from .concurrency import atomic, lock_for_update, run_with_retry
from supplytrack.time_utils import as_utc_naive, days_between, to_utc_z, utcnow
from supplytrack.validation import normalize_promo_code


TIER_LIMITS = {
    "free": 10,
    "essential": 500,
    "scale": 2500,
    "enterprise": 10000,
    "pharma_starter": 1000,
    "pharma_professional": 5000,
    "pharma_enterprise": 50000,
}

TIER_NAMES = {
    "free": "Free",
    "essential": "Essential",
    "scale": "Scale",
    "enterprise": "Enterprise",
    "pharma_starter": "Pharma Starter",
    "pharma_professional": "Pharma Professional",
    "pharma_enterprise": "Pharma Enterprise",
}

# Upgrade ladders; pharma plans never suggest a commercial plan and vice versa
TIER_LADDERS = (
    ("free", "essential", "scale", "enterprise"),
    ("pharma_starter", "pharma_professional", "pharma_enterprise"),
)

UPGRADE_THRESHOLD_PERCENT = 80


def normalize_tier(tier: str | None) -> str:
    """'Pharma Starter', 'pharma-starter' and 'pharma_starter' are the same tier."""
    if not tier:
        return "free"
    key = tier.strip().lower().replace("-", "_").replace(" ", "_")
    return key if key in TIER_LIMITS else "free"


def tier_default_limit(tier: str | None) -> int:
    return TIER_LIMITS[normalize_tier(tier)]


def next_tier(tier: str | None) -> str | None:
    key = normalize_tier(tier)
    for ladder in TIER_LADDERS:
        if key in ladder:
            idx = ladder.index(key)
            return ladder[idx + 1] if idx < len(ladder) - 1 else None
    return None


def effective_limit(user: User) -> int:
    if user.qr_codes_limit is not None:
        return user.qr_codes_limit
    return tier_default_limit(user.subscription_tier)


def _roll_billing_cycle(user: User) -> bool:
    """
    Start a new billing cycle when the current one has run its course.
    Returns True when the usage counter was reset.
    """
    cycle_days = current_app.config.get("BILLING_CYCLE_DAYS") or 0
    now = utcnow()

    if user.billing_cycle_start is None:
        user.billing_cycle_start = now
        return False

    if cycle_days > 0 and days_between(user.billing_cycle_start, now) >= cycle_days:
        user.qr_codes_used = 0
        user.billing_cycle_start = now
        return True

    return False


def check_limits(user_id: int) -> dict:
    """
    Usage summary for the dashboard and the minting flow.

    maxBatchSize is exactly ``remaining``.
    """
    def _op():
        with atomic():
            user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
            if user is None:
                raise NotFoundError("User not found")
            needs_reset = _roll_billing_cycle(user)
            return user, needs_reset

    user, needs_reset = run_with_retry(_op)

    limit = effective_limit(user)
    used = user.qr_codes_used or 0
    remaining = limit - used
    percent_used = round(used / limit * 100) if limit > 0 else 100
    tier = normalize_tier(user.subscription_tier)
    upgrade_to = next_tier(tier)

    return {
        "success": True,
        "tier": tier,
        "tierName": TIER_NAMES[tier],
        "qrLimit": limit,
        "qrCodesUsed": used,
        "remaining": remaining,
        "maxBatchSize": remaining,
        "percentUsed": percent_used,
        "canMint": remaining > 0,
        "shouldUpgrade": percent_used >= UPGRADE_THRESHOLD_PERCENT,
        "nextTier": upgrade_to,
        "nextTierLimit": TIER_LIMITS[upgrade_to] if upgrade_to else None,
        "billingCycleStart": to_utc_z(user.billing_cycle_start),
        "needsReset": needs_reset,
    }


def refund_one(user_id: int) -> None:
    """
    Give back one unit of quota: qr_codes_used = max(0, used - 1).

    Issued as a single UPDATE so it composes with whatever transaction the
    caller has open and never races into a negative value.
    """
    db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            qr_codes_used=case((User.qr_codes_used > 0, User.qr_codes_used - 1), else_=0),
            version_id=User.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )


def set_tier(user_id: int, tier: str) -> User:
    """Move a user to another tier; the limit override resets to that tier's default."""
    key = tier.strip().lower().replace("-", "_").replace(" ", "_")
    if key not in TIER_LIMITS:
        raise ValidationError(f"Unknown tier '{tier}'. Must be one of: {', '.join(TIER_LIMITS)}")

    def _op():
        with atomic():
            user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
            if user is None:
                raise NotFoundError("User not found")
            user.subscription_tier = key
            user.qr_codes_limit = TIER_LIMITS[key]
            return user

    return run_with_retry(_op)


def redeem_promo(user_id: int, raw_code) -> dict:
    """
    Redeem a promo code for bonus QR codes.

    The user row (optimistic version lock + FOR UPDATE) and the promo row
    (conditional increment) are both checked and written in one
    transaction. Two in-flight redemptions by the same user cannot both
    commit: the loser gets StaleDataError, retries, and then sees the code
    in promo_codes_used.
    """
    code = normalize_promo_code(raw_code)

    def _op():
        with atomic():
            user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
            if user is None:
                raise NotFoundError("User not found")

            used_codes = [str(c).strip().upper() for c in (user.promo_codes_used or [])]
            if code in used_codes:
                raise ConflictError(
                    "Already redeemed",
                    payload={"message": "You have already used this promo code."},
                )

            promo = lock_for_update(
                db.session.query(PromoCode).filter(
                    func.upper(PromoCode.code) == code,
                    PromoCode.is_active.is_(True),
                )
            ).first()
            if promo is None:
                raise ValidationError(
                    "Invalid code",
                    payload={"message": "This promo code is not valid."},
                )

            if promo.expires_at is not None and as_utc_naive(promo.expires_at) < utcnow():
                raise ValidationError(
                    "Expired",
                    payload={"message": "This promo code has expired."},
                )

            # Conditional increment: the max_uses check and the bump are one statement
            bumped = db.session.execute(
                update(PromoCode)
                .where(
                    PromoCode.id == promo.id,
                    or_(PromoCode.max_uses.is_(None), PromoCode.times_used < PromoCode.max_uses),
                )
                .values(times_used=PromoCode.times_used + 1)
                .execution_options(synchronize_session=False)
            )
            if bumped.rowcount != 1:
                raise ValidationError(
                    "Limit reached",
                    payload={"message": "This promo code has reached its maximum uses."},
                )

            new_limit = effective_limit(user) + promo.qr_bonus
            user.qr_codes_limit = new_limit
            user.promo_codes_used = used_codes + [code]
            return promo.qr_bonus, new_limit, user.email

    bonus, new_limit, email = run_with_retry(_op)
    current_app.logger.info("User %s redeemed promo code %s for +%s QR codes", email, code, bonus)

    return {
        "success": True,
        "message": f"Success! You've unlocked {bonus} bonus QR codes.",
        "bonus": bonus,
        "newLimit": new_limit,
    }
