"""Unit tests for AuthService.

Runs the service against the in-memory user store and recording mailer
from conftest, with a frozen clock driving token and reset expiry.
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from storefront.errors import (
    Conflict,
    Forbidden,
    Internal,
    InvalidCredentials,
    InvalidOrExpired,
    NotFound,
    TokenExpired,
    TokenVerificationError,
    Unauthorized,
)
from storefront.services.auth_service import FORGOT_PASSWORD_MESSAGE, hash_reset_token

EMAIL = "alice@example.com"
PASSWORD = "Secret123"


async def _register(auth_service, email=EMAIL, password=PASSWORD):
    return await auth_service.register("Alice", "Smith", email, password)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegister:
    async def test_returns_token_for_new_user(self, auth_service, tokens):
        result = await _register(auth_service)

        assert result.user.email == EMAIL
        assert result.expires_in == 3600
        assert tokens.verify(result.access_token).subject == str(result.user.id)

    async def test_stores_hash_not_password(self, auth_service, users, hasher):
        result = await _register(auth_service)

        record = users.records[result.user.id]
        assert record.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, record.password_hash)

    async def test_public_user_has_no_credentials(self, auth_service):
        result = await _register(auth_service)
        dumped = result.user.model_dump()
        assert "password_hash" not in dumped
        assert "password_reset_token_hash" not in dumped

    async def test_duplicate_email_conflicts(self, auth_service, users):
        await _register(auth_service)

        with pytest.raises(Conflict):
            await _register(auth_service, password="Other456")
        assert len(users.records) == 1

    async def test_sends_welcome_email(self, auth_service, mailer):
        await _register(auth_service)
        assert mailer.welcome_emails == [(EMAIL, "Alice")]

    async def test_welcome_email_failure_does_not_fail_registration(
        self, auth_service, mailer
    ):
        mailer.fail = True
        result = await _register(auth_service)
        assert result.access_token


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

class TestLogin:
    async def test_correct_credentials(self, auth_service, tokens):
        registered = await _register(auth_service)

        result = await auth_service.login(EMAIL, PASSWORD)

        assert result.user.id == registered.user.id
        assert tokens.verify(result.access_token).subject == str(registered.user.id)

    async def test_wrong_password(self, auth_service):
        await _register(auth_service)

        with pytest.raises(InvalidCredentials) as exc_info:
            await auth_service.login(EMAIL, "WrongPass1")
        assert exc_info.value.message == "Invalid email or password"

    async def test_unknown_email_is_indistinguishable(self, auth_service):
        await _register(auth_service)

        with pytest.raises(InvalidCredentials) as unknown:
            await auth_service.login("nobody@example.com", PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            await auth_service.login(EMAIL, "WrongPass1")

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.message == wrong.value.message

    async def test_email_match_is_case_sensitive(self, auth_service):
        await _register(auth_service)

        with pytest.raises(InvalidCredentials):
            await auth_service.login("Alice@Example.com", PASSWORD)

    async def test_deactivated_account_forbidden(self, auth_service, users):
        registered = await _register(auth_service)
        users.deactivate(registered.user.id)

        with pytest.raises(Forbidden):
            await auth_service.login(EMAIL, PASSWORD)

    async def test_deactivated_account_wrong_password_still_invalid(
        self, auth_service, users
    ):
        registered = await _register(auth_service)
        users.deactivate(registered.user.id)

        with pytest.raises(InvalidCredentials):
            await auth_service.login(EMAIL, "WrongPass1")


# ---------------------------------------------------------------------------
# Bearer token resolution
# ---------------------------------------------------------------------------

class TestAuthenticateToken:
    async def test_resolves_user(self, auth_service):
        registered = await _register(auth_service)

        user = await auth_service.authenticate_token(registered.access_token)

        assert user.id == registered.user.id

    async def test_expired_token(self, auth_service, clock):
        registered = await _register(auth_service)
        clock.advance(minutes=61)

        with pytest.raises(TokenExpired):
            await auth_service.authenticate_token(registered.access_token)

    async def test_unknown_user(self, auth_service, tokens):
        with pytest.raises(Unauthorized) as exc_info:
            await auth_service.authenticate_token(tokens.issue(str(uuid4())))
        assert exc_info.value.message == "User not found"

    async def test_non_uuid_subject(self, auth_service, tokens):
        with pytest.raises(TokenVerificationError):
            await auth_service.authenticate_token(tokens.issue("not-a-uuid"))

    async def test_deactivated_user(self, auth_service, users):
        registered = await _register(auth_service)
        users.deactivate(registered.user.id)

        with pytest.raises(Forbidden):
            await auth_service.authenticate_token(registered.access_token)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class TestProfile:
    async def test_get_profile(self, auth_service):
        registered = await _register(auth_service)
        user = await auth_service.get_profile(registered.user.id)
        assert user.first_name == "Alice"

    async def test_get_profile_missing(self, auth_service):
        with pytest.raises(NotFound):
            await auth_service.get_profile(uuid4())

    async def test_update_profile_changes_given_fields_only(self, auth_service):
        registered = await _register(auth_service)

        user = await auth_service.update_profile(registered.user.id, first_name="Alicia")

        assert user.first_name == "Alicia"
        assert user.last_name == "Smith"

    async def test_update_profile_missing(self, auth_service):
        with pytest.raises(NotFound):
            await auth_service.update_profile(uuid4(), first_name="Bob")


# ---------------------------------------------------------------------------
# Forgot / reset password
# ---------------------------------------------------------------------------

class TestForgotPassword:
    async def test_unknown_email_gets_same_message_and_no_mail(
        self, auth_service, mailer
    ):
        message = await auth_service.forgot_password("nobody@example.com")

        assert message == FORGOT_PASSWORD_MESSAGE
        assert mailer.reset_emails == []

    async def test_known_email_stores_only_token_hash(
        self, auth_service, users, mailer, clock
    ):
        registered = await _register(auth_service)

        message = await auth_service.forgot_password(EMAIL)

        assert message == FORGOT_PASSWORD_MESSAGE
        raw = mailer.last_reset_token
        record = users.records[registered.user.id]
        assert record.password_reset_token_hash == hash_reset_token(raw)
        assert record.password_reset_token_hash != raw
        assert record.password_reset_expires_at == clock.now + auth_service.password_reset_ttl

    async def test_reset_tokens_are_unique(self, auth_service, mailer):
        await _register(auth_service)

        await auth_service.forgot_password(EMAIL)
        await auth_service.forgot_password(EMAIL)

        assert mailer.reset_emails[0][2] != mailer.reset_emails[1][2]

    async def test_send_failure_clears_token(self, auth_service, users, mailer):
        registered = await _register(auth_service)
        mailer.fail = True

        with pytest.raises(Internal):
            await auth_service.forgot_password(EMAIL)

        record = users.records[registered.user.id]
        assert record.password_reset_token_hash is None
        assert record.password_reset_expires_at is None

    async def test_send_failure_keeps_token_of_newer_request(
        self, auth_service, users, mailer, clock
    ):
        registered = await _register(auth_service)
        newer_hash = hash_reset_token("token-from-a-later-request")

        async def superseded_then_fail(to_email, first_name, reset_token):
            await users.save_reset_token(
                registered.user.id, newer_hash, clock.now + timedelta(hours=1)
            )
            return False

        mailer.send_password_reset_email = superseded_then_fail

        with pytest.raises(Internal):
            await auth_service.forgot_password(EMAIL)

        assert users.records[registered.user.id].password_reset_token_hash == newer_hash


class TestResetPassword:
    async def test_reset_then_login_with_new_password(self, auth_service, mailer):
        await _register(auth_service)
        await auth_service.forgot_password(EMAIL)

        await auth_service.reset_password(mailer.last_reset_token, "NewPass456")

        result = await auth_service.login(EMAIL, "NewPass456")
        assert result.access_token
        with pytest.raises(InvalidCredentials):
            await auth_service.login(EMAIL, PASSWORD)

    async def test_token_is_single_use(self, auth_service, users, mailer):
        registered = await _register(auth_service)
        await auth_service.forgot_password(EMAIL)
        token = mailer.last_reset_token

        await auth_service.reset_password(token, "NewPass456")

        assert not users.records[registered.user.id].has_outstanding_reset
        with pytest.raises(InvalidOrExpired):
            await auth_service.reset_password(token, "Another789")

    async def test_overlapping_requests_with_one_token(
        self, auth_service, users, mailer, hasher
    ):
        registered = await _register(auth_service)
        await auth_service.forgot_password(EMAIL)
        token = mailer.last_reset_token

        results = await asyncio.gather(
            auth_service.reset_password(token, "NewPass456"),
            auth_service.reset_password(token, "Attacker99"),
            return_exceptions=True,
        )

        assert sum(r is None for r in results) == 1
        assert sum(isinstance(r, InvalidOrExpired) for r in results) == 1
        winner = "NewPass456" if results[0] is None else "Attacker99"
        stored = users.records[registered.user.id].password_hash
        assert hasher.verify(winner, stored)

    async def test_unknown_token(self, auth_service):
        with pytest.raises(InvalidOrExpired):
            await auth_service.reset_password("no-such-token", "NewPass456")

    async def test_expired_token_same_error_as_unknown(self, auth_service, mailer, clock):
        await _register(auth_service)
        await auth_service.forgot_password(EMAIL)
        clock.advance(hours=1)

        with pytest.raises(InvalidOrExpired):
            await auth_service.reset_password(mailer.last_reset_token, "NewPass456")

    async def test_new_request_supersedes_previous_token(self, auth_service, mailer):
        await _register(auth_service)
        await auth_service.forgot_password(EMAIL)
        first = mailer.last_reset_token
        await auth_service.forgot_password(EMAIL)
        second = mailer.last_reset_token

        with pytest.raises(InvalidOrExpired):
            await auth_service.reset_password(first, "NewPass456")
        await auth_service.reset_password(second, "NewPass456")


# ---------------------------------------------------------------------------
# Change password
# ---------------------------------------------------------------------------

class TestChangePassword:
    async def test_changes_password(self, auth_service):
        registered = await _register(auth_service)

        await auth_service.change_password(registered.user.id, PASSWORD, "NewPass456")

        assert (await auth_service.login(EMAIL, "NewPass456")).access_token

    async def test_wrong_current_password(self, auth_service, users):
        registered = await _register(auth_service)
        before = users.records[registered.user.id].password_hash

        with pytest.raises(Unauthorized) as exc_info:
            await auth_service.change_password(
                registered.user.id, "WrongPass1", "NewPass456"
            )
        assert exc_info.value.message == "Current password is incorrect"
        assert users.records[registered.user.id].password_hash == before

    async def test_missing_user(self, auth_service):
        with pytest.raises(NotFound):
            await auth_service.change_password(uuid4(), PASSWORD, "NewPass456")

    async def test_clears_outstanding_reset_token(self, auth_service, users, mailer):
        registered = await _register(auth_service)
        await auth_service.forgot_password(EMAIL)
        token = mailer.last_reset_token

        await auth_service.change_password(registered.user.id, PASSWORD, "NewPass456")

        with pytest.raises(InvalidOrExpired):
            await auth_service.reset_password(token, "Another789")
