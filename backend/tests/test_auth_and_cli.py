"""
Identity and CLI tests.

Verifies:
- Passwords are bcrypt-hashed and verified; weak passwords rejected
- Sessions expire, can be revoked, and die with a deactivated account
- `system seed` and `users create` bootstrap a usable install
"""

from datetime import timedelta

import pytest

from conftest import TEST_BCRYPT_ROUNDS, TEST_PASSWORD
from pos_backend.errors import InvalidRequest
from pos_backend.models import Product, SessionToken, User
from pos_backend.services import auth_service, session_service, stock_service
from pos_backend.time_utils import utcnow


class TestPasswords:

    def test_hash_roundtrip(self):
        hashed = auth_service.hash_password(TEST_PASSWORD, rounds=TEST_BCRYPT_ROUNDS)

        assert hashed != TEST_PASSWORD
        assert auth_service.verify_password(TEST_PASSWORD, hashed)
        assert not auth_service.verify_password("Password123?", hashed)

    def test_malformed_hash_never_matches(self):
        assert not auth_service.verify_password(TEST_PASSWORD, "not-a-bcrypt-hash")

    def test_short_password_rejected(self, db_session):
        with pytest.raises(InvalidRequest):
            auth_service.create_user(db_session, "X", "x@pos.test", "short", rounds=TEST_BCRYPT_ROUNDS)

    def test_duplicate_email_rejected(self, db_session, cashier):
        with pytest.raises(InvalidRequest):
            auth_service.create_user(
                db_session, "Other", "CASHIER@pos.test", TEST_PASSWORD, rounds=TEST_BCRYPT_ROUNDS,
            )

    def test_unknown_role_rejected(self, db_session):
        with pytest.raises(InvalidRequest):
            auth_service.create_user(
                db_session, "X", "x@pos.test", TEST_PASSWORD, role="OWNER", rounds=TEST_BCRYPT_ROUNDS,
            )

    def test_authenticate(self, db_session, cashier):
        user = auth_service.authenticate(db_session, " Cashier@POS.test ", TEST_PASSWORD)

        assert user is not None
        assert user.last_login_at is not None
        assert auth_service.authenticate(db_session, "cashier@pos.test", "nope-nope") is None


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, cashier):
        record, token = session_service.create_session(db_session, cashier.id)

        assert record.token_hash == session_service.hash_token(token)
        assert db_session.query(SessionToken).filter_by(token_hash=token).count() == 0
        assert session_service.validate_session(db_session, token).id == cashier.id

    def test_expired_session(self, db_session, cashier):
        record, token = session_service.create_session(db_session, cashier.id)
        record.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(db_session, token) is None

    def test_revoked_session(self, db_session, cashier):
        _, token = session_service.create_session(db_session, cashier.id)

        assert session_service.revoke_session(db_session, token) is True
        assert session_service.revoke_session(db_session, token) is False
        assert session_service.validate_session(db_session, token) is None

    def test_deactivated_user(self, db_session, cashier):
        _, token = session_service.create_session(db_session, cashier.id)
        cashier.is_active = False
        db_session.commit()

        assert session_service.validate_session(db_session, token) is None


class TestCli:

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed"])
        second = runner.invoke(args=["system", "seed"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "already exists" in second.output
        assert db_session.query(User).count() == 2
        products = db_session.query(Product).all()
        assert len(products) == 4
        for product in products:
            assert stock_service.ledger_balance(db_session, product.id) == product.stock

    def test_users_create(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--name", "Ana", "--email", "ana@pos.test",
            "--password", TEST_PASSWORD, "--role", "admin",
        ])

        assert result.exit_code == 0, result.output
        user = db_session.query(User).filter_by(email="ana@pos.test").one()
        assert user.role == "ADMIN"

        duplicate = runner.invoke(args=[
            "users", "create", "--name", "Ana", "--email", "ana@pos.test",
            "--password", TEST_PASSWORD,
        ])
        assert duplicate.exit_code != 0
