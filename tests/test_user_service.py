"""Tests for identity token decoding and user provisioning."""

from unittest.mock import MagicMock, patch

import pytest
from jose import jwt

from propcalc_platform.domain.errors import Unauthenticated, UserNotFound
from propcalc_platform.services.user_service import (
    CallerIdentity,
    decode_identity_token,
    provision_user,
    resolve_user,
)

SECRET = "test-secret"


def _fake_settings(**overrides):
    s = MagicMock()
    s.identity_jwt_secret = SECRET
    s.identity_jwt_algorithm = "HS256"
    s.identity_issuer = ""
    s.identity_audience = ""
    s.admin_emails_list = []
    for key, value in overrides.items():
        setattr(s, key, value)
    return s


class TestDecodeIdentityToken:
    @patch("propcalc_platform.services.user_service.get_settings", return_value=_fake_settings())
    def test_issuer_prefixes_subject(self, _mock_settings):
        token = jwt.encode({"sub": "abc", "iss": "https://id.test", "email": "a@b.com"}, SECRET)
        identity = decode_identity_token(token)
        assert identity.token_identifier == "https://id.test|abc"
        assert identity.email == "a@b.com"

    @patch("propcalc_platform.services.user_service.get_settings", return_value=_fake_settings())
    def test_no_issuer_uses_subject(self, _mock_settings):
        token = jwt.encode({"sub": "abc"}, SECRET)
        assert decode_identity_token(token).token_identifier == "abc"

    @patch("propcalc_platform.services.user_service.get_settings", return_value=_fake_settings())
    def test_wrong_secret_rejected(self, _mock_settings):
        token = jwt.encode({"sub": "abc"}, "other-secret")
        assert decode_identity_token(token) is None

    @patch("propcalc_platform.services.user_service.get_settings", return_value=_fake_settings())
    def test_missing_subject_rejected(self, _mock_settings):
        token = jwt.encode({"email": "a@b.com"}, SECRET)
        assert decode_identity_token(token) is None

    @patch(
        "propcalc_platform.services.user_service.get_settings",
        return_value=_fake_settings(identity_issuer="https://id.test", identity_audience="propcalc"),
    )
    def test_issuer_and_audience_enforced(self, _mock_settings):
        good = jwt.encode({"sub": "abc", "iss": "https://id.test", "aud": "propcalc"}, SECRET)
        wrong_aud = jwt.encode({"sub": "abc", "iss": "https://id.test", "aud": "other"}, SECRET)
        wrong_iss = jwt.encode({"sub": "abc", "iss": "https://evil.test", "aud": "propcalc"}, SECRET)
        assert decode_identity_token(good) is not None
        assert decode_identity_token(wrong_aud) is None
        assert decode_identity_token(wrong_iss) is None


class TestProvisioning:
    async def test_creates_then_updates(self, db_session):
        identity = CallerIdentity(token_identifier="id|1", name="Sam", email="sam@example.com")
        created = await provision_user(db_session, identity)
        assert created.role == "user"

        renamed = CallerIdentity(token_identifier="id|1", name="Samira", email="sam@example.com")
        updated = await provision_user(db_session, renamed)
        assert updated.id == created.id
        assert updated.name == "Samira"

    async def test_defaults_for_missing_claims(self, db_session):
        user = await provision_user(db_session, CallerIdentity(token_identifier="id|2"))
        assert user.name == "Anonymous"
        assert user.email == ""

    async def test_admin_allow_list(self, db_session):
        settings = _fake_settings(admin_emails_list=["boss@example.com"])
        with patch("propcalc_platform.services.user_service.get_settings", return_value=settings):
            user = await provision_user(
                db_session, CallerIdentity(token_identifier="id|3", email="Boss@Example.com")
            )
        assert user.role == "admin"

    async def test_requires_identity(self, db_session):
        with pytest.raises(Unauthenticated):
            await provision_user(db_session, None)

    async def test_resolve_user(self, db_session):
        with pytest.raises(UserNotFound):
            await resolve_user(db_session, CallerIdentity(token_identifier="id|none"))
        created = await provision_user(db_session, CallerIdentity(token_identifier="id|4"))
        assert (await resolve_user(db_session, CallerIdentity(token_identifier="id|4"))).id == created.id
