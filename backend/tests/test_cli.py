"""CLI command tests (system, users, promos groups)."""

import bcrypt

from supplytrack.models import PromoCode, User
from supplytrack.services.token_service import decode_token


def test_users_create_hashes_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--email", "New@Shop.com", "--tier", "essential", "--password", "Password123!",
    ])
    assert result.exit_code == 0, result.output

    user = db_session.query(User).filter_by(email="new@shop.com").one()
    assert user.subscription_tier == "essential"
    assert bcrypt.checkpw(b"Password123!", user.password_hash.encode("utf-8"))


def test_users_create_duplicate(app, db_session, business):
    result = app.test_cli_runner().invoke(args=["users", "create", "--email", business.email])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_users_token(app, db_session, business):
    result = app.test_cli_runner().invoke(args=["users", "token", "--email", business.email])
    assert result.exit_code == 0, result.output
    assert decode_token(result.output.strip())["userId"] == business.id


def test_users_set_tier(app, db_session, business):
    result = app.test_cli_runner().invoke(args=["users", "set-tier", "--email", business.email, "--tier", "scale"])
    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert db_session.get(User, business.id).qr_codes_limit == 2500


def test_promos_lifecycle(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "promos", "create", "--code", "spring25", "--bonus", "25", "--max-uses", "3",
        "--expires", "2030-01-01T00:00:00Z",
    ])
    assert result.exit_code == 0, result.output

    promo = db_session.query(PromoCode).filter_by(code="SPRING25").one()
    assert promo.qr_bonus == 25
    assert promo.max_uses == 3

    listing = runner.invoke(args=["promos", "list"])
    assert "SPRING25" in listing.output

    result = runner.invoke(args=["promos", "deactivate", "--code", "spring25"])
    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert db_session.query(PromoCode).filter_by(code="SPRING25").one().is_active is False


def test_promos_create_bad_expiry(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "promos", "create", "--code", "X1", "--bonus", "5", "--expires", "next tuesday",
    ])
    assert result.exit_code != 0
