"""Tests for seller signup, login and token verification."""

from datetime import timedelta

import pytest
from jose import jwt

from errors import AlreadyExists, InvalidCredentials, InvalidToken, NotFound
from schemas import UserInput
from tests.conftest import make_seller


class TestCreateIdentity:
    def test_returns_identity_without_hash(self, seller):
        assert seller["email"] == "seller@example.com"
        assert seller["name"] == "Ada"
        assert "password_hash" not in seller
        assert "password" not in seller
        assert seller["id"]

    def test_password_is_stored_hashed(self, context, seller):
        stored = context.db["user"].find_one({"email": "seller@example.com"})
        assert stored["password_hash"] != "s3cret"
        assert context.identity.verify_password("s3cret", stored["password_hash"])

    def test_duplicate_email_is_rejected(self, context, seller):
        with pytest.raises(AlreadyExists):
            make_seller(context)

    def test_get_unknown_user(self, context):
        with pytest.raises(NotFound):
            context.identity.get("5f1b2c3d4e5f6a7b8c9d0e1f")


class TestAuthenticate:
    def test_token_subject_is_identity_id(self, context, settings, seller):
        token = context.identity.authenticate("seller@example.com", "s3cret")
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        assert payload["sub"] == seller["id"]
        assert payload["surname"] == "Lovelace"
        assert "exp" in payload

    def test_wrong_password(self, context, seller):
        with pytest.raises(InvalidCredentials):
            context.identity.authenticate("seller@example.com", "nope")

    def test_unknown_email(self, context):
        with pytest.raises(NotFound):
            context.identity.authenticate("ghost@example.com", "s3cret")


class TestVerifyToken:
    def test_round_trip(self, context, seller):
        token = context.identity.authenticate("seller@example.com", "s3cret")
        identity = context.identity.verify_token(token)
        assert identity.id == seller["id"]
        assert identity.email == "seller@example.com"

    def test_garbage_token(self, context):
        with pytest.raises(InvalidToken):
            context.identity.verify_token("not-a-token")

    def test_expired_token(self, context, seller):
        token = context.identity.create_access_token(
            {"sub": seller["id"], "name": "Ada", "surname": "Lovelace", "email": "seller@example.com"},
            expires_delta=timedelta(minutes=-5),
        )
        with pytest.raises(InvalidToken):
            context.identity.verify_token(token)

    def test_wrong_signature(self, context, settings, seller):
        token = jwt.encode({"sub": seller["id"]}, "other-secret", algorithm=settings.algorithm)
        with pytest.raises(InvalidToken):
            context.identity.verify_token(token)

    def test_missing_subject(self, context):
        token = context.identity.create_access_token({"name": "Ada"})
        with pytest.raises(InvalidToken):
            context.identity.verify_token(token)
