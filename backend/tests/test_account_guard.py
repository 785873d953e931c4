"""
Tests for AdminAccountGuard.

Tests cover:
- Login success/failure and attempt counting
- Lockout trigger, enforcement and lazy expiry
- Session verification
- Permission and role evaluation
- Password change, profile update, account bootstrap
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from storefront_auth.core.exceptions import (
    AccountDisabled,
    AccountLocked,
    AccountValidationError,
    InvalidCredentials,
    InvalidToken,
    WeakPassword,
)
from storefront_auth.core.security import _dummy_hash, verify_password
from storefront_auth.models.admin import PERMISSIONS, AdminAccount
from storefront_auth.schemas.auth import AdminPrincipal
from storefront_auth.services.account_guard import AdminAccountGuard


PASSWORD = "correct-horse"


async def fail_logins(guard, username: str, times: int) -> None:
    for _ in range(times):
        with pytest.raises(InvalidCredentials):
            await guard.authenticate(username, "wrong-password")


class TestAuthenticate:

    async def test_success_returns_account_and_token(self, guard, make_admin, clock):
        alice = await make_admin("alice", PASSWORD)

        result = await guard.authenticate("alice", PASSWORD)

        assert result.account.id == alice.id
        assert result.token
        assert result.account.last_login_at == clock.now
        assert result.expires_at > clock.now + timedelta(days=6)

    async def test_username_is_matched_case_insensitively(self, guard, make_admin):
        await make_admin("alice", PASSWORD)

        result = await guard.authenticate("  ALICE ", PASSWORD)

        assert result.account.username == "alice"

    async def test_unknown_username_is_invalid_credentials(self, guard, make_admin):
        await make_admin("alice", PASSWORD)

        with pytest.raises(InvalidCredentials) as unknown:
            await guard.authenticate("mallory", PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            await guard.authenticate("alice", "nope-nope")

        assert str(unknown.value) == str(wrong.value)

    async def test_unknown_username_burns_hash_at_account_cost(
        self, guard, make_admin, monkeypatch
    ):
        alice = await make_admin("alice", PASSWORD)
        calls = []
        monkeypatch.setattr(
            "storefront_auth.services.account_guard.burn_password_check",
            lambda password, rounds: calls.append(rounds),
        )

        with pytest.raises(InvalidCredentials):
            await guard.authenticate("mallory", PASSWORD)

        assert calls == [guard.password_hash_rounds]
        assert _dummy_hash(calls[0])[:7] == alice.hashed_password[:7]

    @pytest.mark.parametrize("prior_failures", [0, 1, 2, 3])
    async def test_wrong_password_increments_by_one_without_locking(
        self, guard, make_admin, repository, prior_failures
    ):
        bob = await make_admin("bob", PASSWORD, role="editor")
        bob.failed_attempt_count = prior_failures
        await repository.save(bob)

        with pytest.raises(InvalidCredentials):
            await guard.authenticate("bob", "wrong-password")

        assert bob.failed_attempt_count == prior_failures + 1
        assert bob.locked_until is None

    async def test_fifth_failure_sets_lock_thirty_minutes_out(self, guard, make_admin, clock):
        bob = await make_admin("bob", PASSWORD, role="editor")
        await fail_logins(guard, "bob", 4)
        assert bob.locked_until is None

        with pytest.raises(InvalidCredentials):
            await guard.authenticate("bob", "wrong-password")

        assert bob.failed_attempt_count == 5
        assert abs((bob.locked_until - (clock.now + timedelta(minutes=30))).total_seconds()) < 5

    async def test_locked_account_rejects_correct_password(self, guard, make_admin, clock):
        bob = await make_admin(
            "bob", PASSWORD, role="editor", permissions=["products.read"]
        )
        await fail_logins(guard, "bob", 5)

        clock.advance(minutes=29)
        with pytest.raises(AccountLocked) as exc_info:
            await guard.authenticate("bob", PASSWORD)

        assert exc_info.value.locked_until == bob.locked_until
        assert bob.last_login_at is None

    async def test_lock_checked_before_password_comparison(
        self, guard, make_admin, monkeypatch
    ):
        await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)

        def must_not_run(*args, **kwargs):
            raise AssertionError("password compared during lockout")

        monkeypatch.setattr(
            "storefront_auth.services.account_guard.verify_password", must_not_run
        )

        with pytest.raises(AccountLocked):
            await guard.authenticate("bob", PASSWORD)

    async def test_attempts_during_lock_do_not_extend_it(self, guard, make_admin, clock):
        bob = await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)
        locked_until = bob.locked_until

        clock.advance(minutes=10)
        with pytest.raises(AccountLocked):
            await guard.authenticate("bob", "wrong-password")

        assert bob.locked_until == locked_until
        assert bob.failed_attempt_count == 5

    async def test_lock_expires_lazily(self, guard, make_admin, clock):
        bob = await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)

        clock.advance(minutes=31)
        result = await guard.authenticate("bob", PASSWORD)

        assert result.account.id == bob.id
        assert bob.failed_attempt_count == 0
        assert bob.locked_until is None

    async def test_failure_after_expired_lock_keeps_counting_and_relocks(
        self, guard, make_admin, clock
    ):
        bob = await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)

        clock.advance(minutes=31)
        await fail_logins(guard, "bob", 1)

        assert bob.failed_attempt_count == 6
        assert bob.locked_until == clock.now + timedelta(minutes=30)
        with pytest.raises(AccountLocked):
            await guard.authenticate("bob", PASSWORD)

    async def test_expired_lock_is_left_in_place_until_success(
        self, guard, make_admin, clock
    ):
        bob = await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)
        expired_at = bob.locked_until

        clock.advance(minutes=31)
        assert guard.lock_status(bob).locked is False
        assert bob.locked_until == expired_at

        await guard.authenticate("bob", PASSWORD)

        assert bob.failed_attempt_count == 0
        assert bob.locked_until is None

    async def test_success_resets_counters(self, guard, make_admin, repository, clock):
        bob = await make_admin("bob", PASSWORD)
        bob.failed_attempt_count = 4
        bob.locked_until = clock.now - timedelta(seconds=1)
        await repository.save(bob)

        await guard.authenticate("bob", PASSWORD)

        assert bob.failed_attempt_count == 0
        assert bob.locked_until is None
        assert bob.last_login_at == clock.now

    async def test_disabled_account_rejected(self, guard, make_admin, repository):
        bob = await make_admin("bob", PASSWORD)
        bob.is_active = False
        await repository.save(bob)

        with pytest.raises(AccountDisabled):
            await guard.authenticate("bob", PASSWORD)

        assert bob.failed_attempt_count == 0

    async def test_storage_error_during_bookkeeping_fails_closed(self, guard, make_admin):
        await make_admin("bob", PASSWORD)
        guard.store.save = AsyncMock(side_effect=RuntimeError("database is gone"))

        with pytest.raises(RuntimeError):
            await guard.authenticate("bob", "wrong-password")
        with pytest.raises(RuntimeError):
            await guard.authenticate("bob", PASSWORD)

    async def test_custom_threshold(self, repository, codec, clock, make_admin):
        strict = AdminAccountGuard(
            repository,
            codec,
            max_failed_attempts=2,
            lockout_duration=timedelta(minutes=5),
            clock=clock,
        )
        bob = await make_admin("bob", PASSWORD)

        await fail_logins(strict, "bob", 2)

        assert bob.locked_until == clock.now + timedelta(minutes=5)


class TestVerifySession:

    async def test_round_trip(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)
        result = await guard.authenticate("alice", PASSWORD)

        principal = await guard.verify_session(result.token)

        assert isinstance(principal, AdminPrincipal)
        assert principal.id == alice.id
        assert principal.username == "alice"
        assert "hashed_password" not in principal.model_dump()

    @pytest.mark.parametrize("token", ["", "not-a-jwt"])
    async def test_garbage_tokens_rejected(self, guard, token):
        with pytest.raises(InvalidToken):
            await guard.verify_session(token)

    async def test_tampered_token_rejected(self, guard, make_admin):
        await make_admin("alice", PASSWORD)
        token = (await guard.authenticate("alice", PASSWORD)).token
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{'A' if signature[0] != 'A' else 'B'}{signature[1:]}"

        with pytest.raises(InvalidToken):
            await guard.verify_session(tampered)

    async def test_expired_token_rejected(self, guard, make_admin, codec):
        alice = await make_admin("alice", PASSWORD)
        token = codec.issue(alice.id, timedelta(seconds=-1))

        with pytest.raises(InvalidToken):
            await guard.verify_session(token)

    async def test_token_for_missing_account_is_invalid_token(self, guard, codec):
        token = codec.issue("deleted-account-id", timedelta(hours=1))

        with pytest.raises(InvalidToken):
            await guard.verify_session(token)

    async def test_disabled_account_rejected(self, guard, make_admin, repository):
        alice = await make_admin("alice", PASSWORD)
        token = (await guard.authenticate("alice", PASSWORD)).token
        alice.is_active = False
        await repository.save(alice)

        with pytest.raises(AccountDisabled):
            await guard.verify_session(token)

    async def test_locked_account_rejected(self, guard, make_admin, repository, clock):
        alice = await make_admin("alice", PASSWORD)
        token = (await guard.authenticate("alice", PASSWORD)).token
        alice.locked_until = clock.now + timedelta(minutes=5)
        await repository.save(alice)

        with pytest.raises(AccountLocked):
            await guard.verify_session(token)

        clock.advance(minutes=6)
        assert (await guard.verify_session(token)).id == alice.id


class TestPermissions:

    def test_admin_has_every_permission(self):
        alice = AdminAccount(username="alice", role="admin")
        alice.set_permissions([])

        assert AdminAccountGuard.has_permission(alice, "anything.not.in.any.list")
        for permission in PERMISSIONS:
            assert AdminAccountGuard.has_permission(alice, permission)

    @pytest.mark.parametrize("role", ["manager", "editor"])
    def test_non_admin_needs_explicit_grant(self, role):
        bob = AdminAccount(username="bob", role=role)
        bob.set_permissions(["products.read"])

        for permission in PERMISSIONS + ("anything.else",):
            expected = permission == "products.read"
            assert AdminAccountGuard.has_permission(bob, permission) is expected

    def test_works_on_principal(self):
        principal = AdminPrincipal(
            id="1", username="bob", role="editor", permissions=["categories.read"]
        )

        assert AdminAccountGuard.has_permission(principal, "categories.read")
        assert not AdminAccountGuard.has_permission(principal, "categories.delete")

    def test_has_any_permission(self):
        bob = AdminPrincipal(id="1", username="bob", role="editor", permissions=["products.read"])

        assert AdminAccountGuard.has_any_permission(bob, ["settings.update", "products.read"])
        assert not AdminAccountGuard.has_any_permission(bob, ["settings.update"])
        assert not AdminAccountGuard.has_any_permission(bob, [])

    def test_has_role(self):
        bob = AdminPrincipal(id="1", username="bob", role="manager")

        assert AdminAccountGuard.has_role(bob, "manager")
        assert AdminAccountGuard.has_role(bob, ["admin", "manager"])
        assert not AdminAccountGuard.has_role(bob, ("admin",))


class TestChangePassword:

    async def test_changes_password(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)

        await guard.change_password(alice, PASSWORD, "brand-new-secret")

        assert verify_password("brand-new-secret", alice.hashed_password)
        await guard.authenticate("alice", "brand-new-secret")
        with pytest.raises(InvalidCredentials):
            await guard.authenticate("alice", PASSWORD)

    async def test_short_new_password_is_weak(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)
        original_hash = alice.hashed_password

        with pytest.raises(WeakPassword) as exc_info:
            await guard.change_password(alice, PASSWORD, "12345")

        assert exc_info.value.min_length == 6
        assert alice.hashed_password == original_hash

    async def test_wrong_current_password(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)
        original_hash = alice.hashed_password

        with pytest.raises(InvalidCredentials):
            await guard.change_password(alice, "not-my-password", "brand-new-secret")

        assert alice.hashed_password == original_hash
        assert alice.failed_attempt_count == 0

    async def test_accepts_principal(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)
        principal = AdminPrincipal.model_validate(alice)

        record = await guard.change_password(principal, PASSWORD, "brand-new-secret")

        assert record.id == alice.id
        assert verify_password("brand-new-secret", record.hashed_password)


class TestAccountManagement:

    async def test_create_account_defaults_to_role_permissions(self, guard):
        editor = await guard.create_account("eddie", "secret1", role="editor")

        assert editor.get_permissions() == [
            "products.read", "products.create", "products.update", "categories.read",
        ]
        assert editor.hashed_password != "secret1"

    async def test_create_account_with_explicit_permissions(self, guard):
        bob = await guard.create_account(
            "bob", "secret1", role="editor", permissions=["products.read"]
        )

        assert bob.get_permissions() == ["products.read"]

    async def test_create_account_rejects_weak_password(self, guard, repository):
        with pytest.raises(WeakPassword):
            await guard.create_account("bob", "12345")

        assert await repository.count() == 0

    async def test_create_account_rejects_duplicate(self, guard):
        await guard.create_account("bob", "secret1")

        with pytest.raises(AccountValidationError):
            await guard.create_account("BOB", "secret2")

    async def test_ensure_default_admin_only_when_empty(self, guard, repository):
        created = await guard.ensure_default_admin("admin", "admin123")

        assert created is not None
        assert created.role == "admin"
        assert created.get_permissions() == list(PERMISSIONS)
        assert await guard.ensure_default_admin("admin", "admin123") is None
        assert await repository.count() == 1

    async def test_ensure_default_admin_skips_when_other_accounts_exist(self, guard, make_admin):
        await make_admin("alice", PASSWORD)

        assert await guard.ensure_default_admin("admin", "admin123") is None

    async def test_update_profile_sets_and_clears_email(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD)

        await guard.update_profile(alice, "Alice@Shop.test")
        assert alice.email == "alice@shop.test"

        await guard.update_profile(alice, "")
        assert alice.email is None

    async def test_update_profile_invalid_email_keeps_previous(self, guard, make_admin):
        alice = await make_admin("alice", PASSWORD, email="alice@shop.test")

        with pytest.raises(AccountValidationError):
            await guard.update_profile(alice, "broken")

        assert alice.email == "alice@shop.test"

    async def test_lock_status(self, guard, make_admin, clock):
        bob = await make_admin("bob", PASSWORD)
        assert guard.lock_status(bob).locked is False

        await fail_logins(guard, "bob", 5)
        status = guard.lock_status(bob)
        assert status.locked is True
        assert status.locked_until == bob.locked_until
        assert status.remaining_seconds == 30 * 60

        clock.advance(minutes=30)
        assert guard.lock_status(bob).locked is False

    async def test_list_admins(self, guard, make_admin, clock):
        await make_admin("carol", PASSWORD)
        await make_admin("bob", PASSWORD)
        await fail_logins(guard, "bob", 5)

        rows = await guard.list_admins()

        assert [row.user.username for row in rows] == ["bob", "carol"]
        assert rows[0].lock.locked is True
        assert rows[0].failed_attempt_count == 5
        assert rows[1].lock.locked is False

        clock.advance(minutes=31)
        rows = await guard.list_admins()
        assert rows[0].lock.locked is False
        assert rows[0].failed_attempt_count == 5


class TestAuditLogging:
    """Guard events are logged with account context and never with secrets."""

    LOGGER = "storefront_auth.services.account_guard"

    def events(self, caplog):
        return [getattr(r, "event", None) for r in caplog.records if r.name == self.LOGGER]

    async def test_failed_and_locked_events(self, guard, make_admin, caplog):
        await make_admin("bob", PASSWORD)
        caplog.set_level("INFO", logger=self.LOGGER)
        caplog.clear()

        await fail_logins(guard, "bob", 5)
        with pytest.raises(AccountLocked):
            await guard.authenticate("bob", PASSWORD)

        assert self.events(caplog) == ["login_failed"] * 4 + ["account_locked", "login_rejected_locked"]

    async def test_success_event_carries_admin_id(self, guard, make_admin, caplog):
        bob = await make_admin("bob", PASSWORD)
        caplog.set_level("INFO", logger=self.LOGGER)
        caplog.clear()

        await guard.authenticate("bob", PASSWORD)

        record = [r for r in caplog.records if getattr(r, "event", None) == "login_succeeded"][0]
        assert record.admin_id == bob.id
        assert record.username == "bob"

    async def test_passwords_and_hashes_never_logged(self, guard, make_admin, caplog):
        bob = await make_admin("bob", PASSWORD)
        caplog.set_level("DEBUG", logger=self.LOGGER)
        old_hash = bob.hashed_password

        await fail_logins(guard, "bob", 2)
        await guard.authenticate("bob", PASSWORD)
        await guard.change_password(bob, PASSWORD, "new-secret-1")

        for record in [r for r in caplog.records if r.name == self.LOGGER]:
            values = " ".join(str(v) for v in vars(record).values())
            assert PASSWORD not in values
            assert "wrong-password" not in values
            assert "new-secret-1" not in values
            assert old_hash not in values
            assert bob.hashed_password not in values
