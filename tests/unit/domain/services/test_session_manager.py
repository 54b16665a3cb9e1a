"""Unit tests for SessionManager against an in-memory database."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from authcore.domain.exceptions import (
    ConfigurationError,
    DuplicateEmailError,
    InactiveAccountError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from authcore.domain.services import DeviceContext, RefreshRejection, SessionManager
from authcore.infrastructure.auth import MIN_COST_FACTOR, TokenCodec, hash_password
from authcore.infrastructure.persistence.models import RefreshTokenModel, UserModel

EMAIL = "alice@example.com"
TEST_PASSWORD = "Secret123!"


async def _register(manager: SessionManager, email: str = EMAIL, device: DeviceContext | None = None):
    return await manager.register(
        email=email,
        first_name="Alice",
        last_name="Liddell",
        password=TEST_PASSWORD,
        device=device,
    )


async def _count(db_session, model, *criteria) -> int:
    result = await db_session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


class TestConstruction:

    @pytest.mark.parametrize("cost", [MIN_COST_FACTOR - 1, 17])
    def test_out_of_range_cost_rejected(self, make_session_manager, cost):
        with pytest.raises(ConfigurationError):
            make_session_manager(cost=cost)


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_creates_user_and_one_active_token(
        self, session_manager, refresh_token_repository, db_session
    ):
        bundle = await _register(session_manager)

        assert bundle.user.email == EMAIL
        assert bundle.user.first_name == "Alice"
        assert bundle.user.roles == ["user"]
        assert bundle.token_type == "Bearer"
        assert bundle.expires_in == 900
        assert not hasattr(bundle.user, "password_hash")

        assert await _count(db_session, UserModel) == 1
        assert await refresh_token_repository.count_active_for_user(bundle.user.id) == 1

        record = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        assert record.is_revoked is False
        assert record.expires_at > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_stored_expiry_matches_token_expiry(
        self, session_manager, token_codec, refresh_token_repository
    ):
        bundle = await _register(session_manager)

        claims = token_codec.verify_refresh(bundle.refresh_token).unwrap()
        record = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)

        assert int(record.expires_at.timestamp()) == claims.exp

    @pytest.mark.asyncio
    async def test_register_hashes_password(self, session_manager, user_repository):
        bundle = await _register(session_manager)

        user = await user_repository.find_by_id(bundle.user.id, include_hash=True)

        assert user.password_hash.startswith("$argon2id$")
        assert TEST_PASSWORD not in user.password_hash

    @pytest.mark.asyncio
    async def test_access_token_carries_identity(self, session_manager, token_codec):
        bundle = await _register(session_manager)

        claims = token_codec.verify_access(bundle.access_token).unwrap()

        assert claims.sub == bundle.user.id
        assert claims.email == EMAIL
        assert claims.roles == ("user",)

    @pytest.mark.asyncio
    async def test_register_records_device(self, session_manager, refresh_token_repository):
        device = DeviceContext(user_agent="pytest-agent", ip_address="10.0.0.1")

        bundle = await _register(session_manager, device=device)

        record = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        assert record.user_agent == "pytest-agent"
        assert record.ip_address == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, session_manager, db_session):
        await _register(session_manager)

        with pytest.raises(DuplicateEmailError):
            await _register(session_manager)

        assert await _count(db_session, UserModel) == 1

    @pytest.mark.asyncio
    async def test_duplicate_email_is_case_insensitive(self, session_manager):
        await _register(session_manager)

        with pytest.raises(DuplicateEmailError):
            await _register(session_manager, "  ALICE@Example.com")


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, session_manager, user_repository, refresh_token_repository):
        registered = await _register(session_manager)

        bundle = await session_manager.login(EMAIL, TEST_PASSWORD)

        assert bundle.user.id == registered.user.id
        assert bundle.refresh_token != registered.refresh_token
        assert await refresh_token_repository.count_active_for_user(bundle.user.id) == 2

        user = await user_repository.find_by_id(bundle.user.id)
        assert user.last_login is not None

    @pytest.mark.asyncio
    async def test_login_returns_current_login_time(self, session_manager, user_repository):
        registered = await _register(session_manager)
        assert registered.user.last_login is None

        bundle = await session_manager.login(EMAIL, TEST_PASSWORD)

        stored = await user_repository.find_by_id(bundle.user.id)
        assert bundle.user.last_login is not None
        assert bundle.user.last_login == stored.last_login

    @pytest.mark.asyncio
    async def test_login_email_case_insensitive(self, session_manager):
        await _register(session_manager)

        bundle = await session_manager.login("Alice@EXAMPLE.com", TEST_PASSWORD)

        assert bundle.user.email == EMAIL

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_fail_alike(self, session_manager):
        await _register(session_manager)

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await session_manager.login(EMAIL, "not-the-password")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await session_manager.login("nobody@example.com", TEST_PASSWORD)

        assert type(wrong_password.value) is type(unknown_email.value)
        assert str(wrong_password.value) == str(unknown_email.value)

    @pytest.mark.asyncio
    async def test_failed_login_issues_no_token(self, session_manager, db_session):
        await _register(session_manager)

        with pytest.raises(InvalidCredentialsError):
            await session_manager.login(EMAIL, "not-the-password")

        assert await _count(db_session, RefreshTokenModel) == 1

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, session_manager, user_repository, db_session):
        bundle = await _register(session_manager)
        await user_repository.set_active(bundle.user.id, False)
        await db_session.commit()

        with pytest.raises(InactiveAccountError):
            await session_manager.login(EMAIL, TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_inactive_user_with_wrong_password_gets_credentials_error(
        self, session_manager, user_repository, db_session
    ):
        bundle = await _register(session_manager)
        await user_repository.set_active(bundle.user.id, False)
        await db_session.commit()

        with pytest.raises(InvalidCredentialsError):
            await session_manager.login(EMAIL, "not-the-password")

    @pytest.mark.asyncio
    async def test_malformed_stored_hash_fails_as_bad_credentials(
        self, session_manager, user_repository, db_session
    ):
        bundle = await _register(session_manager)
        await user_repository.update_password_hash(bundle.user.id, "not-an-argon2-hash")
        await db_session.commit()

        with pytest.raises(InvalidCredentialsError):
            await session_manager.login(EMAIL, TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_login_upgrades_hash_to_configured_cost(
        self, make_session_manager, user_repository
    ):
        await _register(make_session_manager(cost=MIN_COST_FACTOR))
        stronger = make_session_manager(cost=MIN_COST_FACTOR + 1)

        bundle = await stronger.login(EMAIL, TEST_PASSWORD)

        user = await user_repository.find_by_id(bundle.user.id, include_hash=True)
        assert f"m={2 ** (MIN_COST_FACTOR + 1)}," in user.password_hash


class TestRefresh:

    @pytest.mark.asyncio
    async def test_refresh_rotates_token(self, session_manager, refresh_token_repository):
        bundle = await _register(session_manager)

        pair = await session_manager.refresh(bundle.refresh_token)

        assert pair.refresh_token != bundle.refresh_token
        old = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        new = await refresh_token_repository.find_by_value(pair.refresh_token, bundle.user.id)
        assert old.is_revoked is True
        assert new.is_revoked is False
        assert await refresh_token_repository.count_active_for_user(bundle.user.id) == 1

    @pytest.mark.asyncio
    async def test_refresh_token_is_single_use(self, session_manager):
        bundle = await _register(session_manager)
        await session_manager.refresh(bundle.refresh_token)

        with pytest.raises(InvalidTokenError) as exc_info:
            await session_manager.refresh(bundle.refresh_token)

        assert exc_info.value.reason is RefreshRejection.REVOKED

    @pytest.mark.asyncio
    async def test_rotated_token_keeps_device(self, session_manager, refresh_token_repository):
        device = DeviceContext(user_agent="phone", ip_address="10.0.0.2")
        bundle = await _register(session_manager, device=device)

        pair = await session_manager.refresh(bundle.refresh_token)

        record = await refresh_token_repository.find_by_value(pair.refresh_token, bundle.user.id)
        assert record.user_agent == "phone"
        assert record.ip_address == "10.0.0.2"

    @pytest.mark.asyncio
    async def test_expired_refresh_token_rejected(self, make_session_manager):
        codec = TokenCodec("access-secret", "refresh-secret", access_ttl="15m", refresh_ttl="1s")
        manager = make_session_manager(codec=codec)
        bundle = await _register(manager)

        await asyncio.sleep(2)

        with pytest.raises(InvalidTokenError) as exc_info:
            await manager.refresh(bundle.refresh_token)

        assert exc_info.value.reason is RefreshRejection.EXPIRED

    @pytest.mark.asyncio
    async def test_access_token_cannot_refresh(self, session_manager):
        bundle = await _register(session_manager)

        with pytest.raises(InvalidTokenError) as exc_info:
            await session_manager.refresh(bundle.access_token)

        assert exc_info.value.reason is RefreshRejection.MALFORMED

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self, session_manager):
        with pytest.raises(InvalidTokenError):
            await session_manager.refresh("invalid.token.here")

    @pytest.mark.asyncio
    async def test_unstored_token_rejected(self, session_manager, token_codec):
        bundle = await _register(session_manager)
        forged = token_codec.sign_refresh(bundle.user.id)

        with pytest.raises(InvalidTokenError) as exc_info:
            await session_manager.refresh(forged.token)

        assert exc_info.value.reason is RefreshRejection.NOT_FOUND

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_refresh(
        self, session_manager, user_repository, refresh_token_repository, db_session
    ):
        bundle = await _register(session_manager)
        await user_repository.set_active(bundle.user.id, False)
        await db_session.commit()

        with pytest.raises(InvalidTokenError) as exc_info:
            await session_manager.refresh(bundle.refresh_token)

        assert exc_info.value.reason is RefreshRejection.USER_INACTIVE
        record = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        assert record.is_revoked is False

    @pytest.mark.asyncio
    async def test_all_rejections_look_the_same(self, session_manager):
        bundle = await _register(session_manager)
        await session_manager.refresh(bundle.refresh_token)

        with pytest.raises(InvalidTokenError) as replayed:
            await session_manager.refresh(bundle.refresh_token)
        with pytest.raises(InvalidTokenError) as garbage:
            await session_manager.refresh("garbage")

        assert str(replayed.value) == str(garbage.value) == "Invalid or expired token"


class TestLogout:

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, session_manager, refresh_token_repository):
        bundle = await _register(session_manager)

        await session_manager.logout(bundle.user.id, bundle.refresh_token)

        record = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        assert record.is_revoked is True
        with pytest.raises(InvalidTokenError):
            await session_manager.refresh(bundle.refresh_token)

    @pytest.mark.asyncio
    async def test_logout_twice_is_harmless(self, session_manager, refresh_token_repository):
        bundle = await _register(session_manager)

        await session_manager.logout(bundle.user.id, bundle.refresh_token)
        first = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)
        await session_manager.logout(bundle.user.id, bundle.refresh_token)
        second = await refresh_token_repository.find_by_value(bundle.refresh_token, bundle.user.id)

        assert first.is_revoked is second.is_revoked is True
        assert first.revoked_at == second.revoked_at

    @pytest.mark.asyncio
    async def test_logout_ignores_foreign_and_unknown_tokens(
        self, session_manager, refresh_token_repository
    ):
        alice = await _register(session_manager)
        bob = await _register(session_manager, "bob@example.com")

        await session_manager.logout(bob.user.id, alice.refresh_token)
        await session_manager.logout(bob.user.id, "not-a-token")

        record = await refresh_token_repository.find_by_value(alice.refresh_token, alice.user.id)
        assert record.is_revoked is False

    @pytest.mark.asyncio
    async def test_logout_leaves_other_sessions(self, session_manager, refresh_token_repository):
        first = await _register(session_manager)
        second = await session_manager.login(EMAIL, TEST_PASSWORD)

        await session_manager.logout(first.user.id, first.refresh_token)

        assert await refresh_token_repository.count_active_for_user(first.user.id) == 1
        await session_manager.refresh(second.refresh_token)


class TestChangePassword:

    @pytest.mark.asyncio
    async def test_change_password_revokes_all_sessions(
        self, session_manager, refresh_token_repository
    ):
        bundle = await _register(session_manager)
        await session_manager.login(EMAIL, TEST_PASSWORD)

        revoked = await session_manager.change_password(bundle.user.id, TEST_PASSWORD, "NewSecret456!")

        assert revoked == 2
        assert await refresh_token_repository.count_active_for_user(bundle.user.id) == 0
        with pytest.raises(InvalidTokenError):
            await session_manager.refresh(bundle.refresh_token)

    @pytest.mark.asyncio
    async def test_new_password_takes_effect(self, session_manager):
        bundle = await _register(session_manager)

        await session_manager.change_password(bundle.user.id, TEST_PASSWORD, "NewSecret456!")

        await session_manager.login(EMAIL, "NewSecret456!")
        with pytest.raises(InvalidCredentialsError):
            await session_manager.login(EMAIL, TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_wrong_old_password_rejected(self, session_manager, refresh_token_repository):
        bundle = await _register(session_manager)

        with pytest.raises(InvalidCredentialsError):
            await session_manager.change_password(bundle.user.id, "wrong", "NewSecret456!")

        assert await refresh_token_repository.count_active_for_user(bundle.user.id) == 1

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, session_manager):
        with pytest.raises(InvalidCredentialsError):
            await session_manager.change_password("missing", TEST_PASSWORD, "NewSecret456!")


class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_authenticate_returns_user_view(self, session_manager):
        bundle = await _register(session_manager)

        user = await session_manager.authenticate(bundle.access_token)

        assert user.id == bundle.user.id
        assert user.email == EMAIL

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, session_manager):
        bundle = await _register(session_manager)

        with pytest.raises(InvalidTokenError):
            await session_manager.authenticate(bundle.refresh_token)

    @pytest.mark.asyncio
    async def test_deactivated_user_rejected(self, session_manager, user_repository, db_session):
        bundle = await _register(session_manager)
        await user_repository.set_active(bundle.user.id, False)
        await db_session.commit()

        with pytest.raises(InvalidTokenError):
            await session_manager.authenticate(bundle.access_token)


@pytest.mark.asyncio
async def test_preexisting_hash_of_other_cost_still_logs_in(
    session_manager, user_repository, db_session
):
    """Test that a hash created with another cost factor still verifies."""
    user = await user_repository.create(
        email=EMAIL,
        first_name="Alice",
        last_name="Liddell",
        password_hash=hash_password(TEST_PASSWORD, MIN_COST_FACTOR + 1),
    )
    await db_session.commit()

    bundle = await session_manager.login(EMAIL, TEST_PASSWORD)

    assert bundle.user.id == user.id
