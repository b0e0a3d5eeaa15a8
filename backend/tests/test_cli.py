"""Tests for the flask CLI command groups."""

from sqlalchemy import text

from shopledger.extensions import db
from shopledger.models import User

from conftest import TEST_PASSWORD


def test_system_init(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "PASS Schema ready" in result.output


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "owner",
        "--email", "Owner@Shop.test",
        "--password", TEST_PASSWORD,
        "--role", "manager",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created user: owner (owner@shop.test) with role 'MANAGER'" in result.output

    user = db.session.query(User).filter_by(username="owner").one()
    assert user.password_hash != TEST_PASSWORD

    listing = runner.invoke(args=["users", "list"])
    assert "owner" in listing.output
    assert "MANAGER" in listing.output


def test_users_create_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--username", "weak", "--email", "weak@shop.test", "--password", "short",
    ])
    assert result.exit_code == 1
    assert "FAIL Password validation failed" in result.output
    assert db.session.query(User).count() == 0


def test_users_create_duplicate(app, sales_user):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--username", "seller", "--email", "other@shop.test", "--password", TEST_PASSWORD,
    ])
    assert result.exit_code == 1
    assert "FAIL Failed to create user" in result.output


def test_users_list_empty(app, db_session):
    result = app.test_cli_runner().invoke(args=["users", "list"])
    assert "No users found." in result.output


def test_ledger_verify(app, make_product):
    product = make_product(5)
    runner = app.test_cli_runner()

    ok = runner.invoke(args=["ledger", "verify"])
    assert ok.exit_code == 0
    assert "PASS 1 products balanced" in ok.output

    db.session.execute(text("UPDATE products SET current_stock = 9 WHERE id = :id"), {"id": product.id})
    db.session.commit()

    drift = runner.invoke(args=["ledger", "verify", "--product-id", str(product.id)])
    assert drift.exit_code == 1
    assert f"FAIL product {product.id}" in drift.output
    assert "current=9 expected=5" in drift.output


def test_ledger_verify_unknown_product(app, db_session):
    result = app.test_cli_runner().invoke(args=["ledger", "verify", "--product-id", "999"])
    assert result.exit_code == 1
    assert "FAIL Product 999 not found" in result.output
