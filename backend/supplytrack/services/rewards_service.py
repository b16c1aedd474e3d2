# Overview: Loyalty points: at-most-once claims, customer balances, program settings.

"""
Rewards Service

CLAIMS:
- claim key: "batch:<batch_group_id>" when the claim is made for a batch,
  "product:<product_id>" otherwise. Namespacing keeps a product id from
  ever colliding with some other batch's group id.
- First claim wins. The unique constraint on points_claims.claim_key is
  the arbiter: the claim row is inserted first, and a concurrent loser
  fails on that insert, rolls back, and reports who claimed it.
- The claim row and the customer balance increment commit together or
  not at all.

POINTS AWARDED: product metadata rewardPoints > business points_per_claim > 10.
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CustomerPoints, PointsClaim, Product, User
from ..product_metadata import ProductMetadata
from .concurrency import atomic
from supplytrack.time_utils import to_utc_z, utcnow
from supplytrack.validation import coerce_int, normalize_email, optional_str, require_fields


DEFAULT_POINTS_PER_CLAIM = 10
MIN_POINTS_PER_CLAIM = 1
MAX_POINTS_PER_CLAIM = 1000
LEADERBOARD_SIZE = 100
RECENT_CLAIMS_SIZE = 10

_MASK = re.compile(r"^([^@]{0,2})[^@]*(@.*)$")


def mask_email(email: str) -> str:
    """jane.doe@example.com -> ja***@example.com, a@example.com -> a***@example.com"""
    return _MASK.sub(r"\1***\2", email)


def claim_key_for(product_id: str, batch_group_id: str | None) -> tuple[str, str]:
    """Returns (claim_key, claim_type)."""
    if batch_group_id:
        return f"batch:{batch_group_id}", "batch"
    return f"product:{product_id}", "product"


def points_for(product: Product, business: User) -> int:
    override = ProductMetadata.from_product(product).reward_points
    if override is not None:
        return override
    return business.points_per_claim or DEFAULT_POINTS_PER_CLAIM


def _credit_points(email: str, business_id: int, points: int) -> int:
    """
    Upsert-increment customer_points for (email, business) and return the
    new balance. Uses the dialect's INSERT ... ON CONFLICT DO UPDATE.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        insert = None

    now = utcnow()
    if insert is not None:
        stmt = insert(CustomerPoints).values(
            email=email, business_id=business_id, total_points=points, created_at=now, updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["email", "business_id"],
            set_={
                "total_points": CustomerPoints.total_points + stmt.excluded.total_points,
                "updated_at": now,
            },
        )
        db.session.execute(stmt)
    else:
        row = (
            db.session.query(CustomerPoints)
            .filter_by(email=email, business_id=business_id)
            .with_for_update()
            .first()
        )
        if row is None:
            db.session.add(CustomerPoints(email=email, business_id=business_id, total_points=points))
        else:
            row.total_points = row.total_points + points
        db.session.flush()

    return (
        db.session.query(CustomerPoints.total_points)
        .filter_by(email=email, business_id=business_id)
        .scalar()
    )


def _already_claimed(claim_key: str, claim_type: str) -> ConflictError:
    existing = db.session.query(PointsClaim).filter_by(claim_key=claim_key).first()
    payload = {"message": f"This {claim_type} has already been claimed."}
    if existing is not None:
        payload["claimedBy"] = mask_email(existing.customer_email)
        payload["claimedAt"] = to_utc_z(existing.claimed_at)
    return ConflictError("Points already claimed", payload=payload)


def claim_points(payload: dict) -> dict:
    require_fields(payload, "productId", message="Product ID is required")
    product_id = str(payload["productId"]).strip()
    email = normalize_email(payload.get("email"))
    batch_group_id = optional_str(payload.get("batchGroupId"))

    product = db.session.query(Product).filter_by(product_id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")

    business = product.owner
    if not business.rewards_enabled:
        raise ValidationError("Rewards program not enabled for this business")

    if batch_group_id and batch_group_id != product.batch_group_id:
        raise ValidationError("batchGroupId does not match this product")

    claim_key, claim_type = claim_key_for(product_id, batch_group_id)
    points = points_for(product, business)
    business_id = business.id
    business_name = business.business_name
    program_name = business.rewards_program_name

    try:
        with atomic():
            db.session.add(PointsClaim(
                claim_key=claim_key,
                claim_type=claim_type,
                product_id=product_id,
                batch_group_id=batch_group_id,
                customer_email=email,
                points_awarded=points,
                business_id=business_id,
            ))
            db.session.flush()
            total_points = _credit_points(email, business_id, points)
    except IntegrityError:
        raise _already_claimed(claim_key, claim_type)

    current_app.logger.info("Claim %s: %d points to %s", claim_key, points, mask_email(email))

    return {
        "success": True,
        "pointsAwarded": points,
        "totalPoints": total_points,
        "message": f"You earned {points} points!",
        "businessName": business_name,
        "programName": program_name,
    }


def _settings_dict(user: User) -> dict:
    return {
        "rewardsEnabled": bool(user.rewards_enabled),
        "pointsPerClaim": user.points_per_claim or DEFAULT_POINTS_PER_CLAIM,
        "programName": user.rewards_program_name or "",
        "businessName": user.business_name or "",
    }


def get_settings(user_id: int) -> dict:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Business not found")
    return {"success": True, "settings": _settings_dict(user)}


def update_settings(user_id: int, payload: dict) -> dict:
    require_fields(payload, "pointsPerClaim", message="Points per claim must be between 1 and 1000")
    try:
        points = coerce_int(
            payload["pointsPerClaim"], "pointsPerClaim",
            minimum=MIN_POINTS_PER_CLAIM, maximum=MAX_POINTS_PER_CLAIM,
        )
    except ValidationError:
        raise ValidationError("Points per claim must be between 1 and 1000")

    with atomic():
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError("Business not found")
        user.rewards_enabled = payload.get("rewardsEnabled") is True
        user.points_per_claim = points
        user.rewards_program_name = optional_str(payload.get("programName"), 100)
        user.business_name = optional_str(payload.get("businessName"), 255)
        settings = _settings_dict(user)

    return {"success": True, "message": "Rewards settings updated", "settings": settings}


def leaderboard(user_id: int) -> dict:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Business not found")

    claim_counts = (
        db.session.query(PointsClaim.customer_email, func.count(PointsClaim.id).label("claims"))
        .filter(PointsClaim.business_id == user_id)
        .group_by(PointsClaim.customer_email)
        .subquery()
    )
    rows = (
        db.session.query(CustomerPoints, claim_counts.c.claims)
        .outerjoin(claim_counts, claim_counts.c.customer_email == CustomerPoints.email)
        .filter(CustomerPoints.business_id == user_id)
        .order_by(CustomerPoints.total_points.desc(), CustomerPoints.id.asc())
        .limit(LEADERBOARD_SIZE)
        .all()
    )

    total_customers, total_points = (
        db.session.query(func.count(CustomerPoints.id), func.coalesce(func.sum(CustomerPoints.total_points), 0))
        .filter(CustomerPoints.business_id == user_id)
        .one()
    )
    total_claims = (
        db.session.query(func.count(PointsClaim.id)).filter(PointsClaim.business_id == user_id).scalar()
    )

    recent = (
        db.session.query(PointsClaim, Product.product_name)
        .outerjoin(Product, Product.product_id == PointsClaim.product_id)
        .filter(PointsClaim.business_id == user_id)
        .order_by(PointsClaim.claimed_at.desc(), PointsClaim.id.desc())
        .limit(RECENT_CLAIMS_SIZE)
        .all()
    )

    return {
        "success": True,
        "settings": _settings_dict(user),
        "stats": {
            "totalCustomers": int(total_customers or 0),
            "totalPointsAwarded": int(total_points or 0),
            "totalClaims": int(total_claims or 0),
        },
        "leaderboard": [
            {
                "email": cp.email,
                "points": cp.total_points,
                "claims": int(claims or 0),
                "firstClaim": to_utc_z(cp.created_at),
                "lastActivity": to_utc_z(cp.updated_at),
            }
            for cp, claims in rows
        ],
        "recentClaims": [
            {
                "email": claim.customer_email,
                "points": claim.points_awarded,
                "claimType": claim.claim_type,
                "claimedAt": to_utc_z(claim.claimed_at),
                "productName": product_name,
            }
            for claim, product_name in recent
        ],
    }
