from datetime import timedelta

import pytest

from models import storage
from services.exceptions import (
    AccountDisabled,
    AuthenticationFailed,
    TokenExpired,
    TokenNotFound,
)
from services.sessions import SessionService, authorities_for
from utils.security import utcnow


class TestLogin:
    def test_login_returns_access_and_refresh_tokens(self, services, make_user):
        """Valid credentials produce a verifiable access token and a stored refresh token."""
        make_user("alice", roles=["USER"])
        tokens = services.sessions.login("alice", "Passw0rd1")

        claims = services.codec.verify(tokens.access_token)
        assert claims.subject == "alice"
        assert claims.authorities == ("ROLE_USER",)
        assert services.refresh_tokens.find_by_token(tokens.refresh_token) is not None

    def test_wrong_password(self, services, make_user):
        make_user("alice")
        with pytest.raises(AuthenticationFailed):
            services.sessions.login("alice", "wrong-password1")

    def test_unknown_user_looks_like_wrong_password(self, services):
        """Unknown usernames are reported as bad credentials."""
        with pytest.raises(AuthenticationFailed):
            services.sessions.login("ghost", "Passw0rd1")

    def test_disabled_account(self, services, make_user):
        """Correct credentials on an unverified account are AccountDisabled."""
        make_user("alice", enabled=False)
        with pytest.raises(AccountDisabled):
            services.sessions.login("alice", "Passw0rd1")

    def test_disabled_account_with_wrong_password(self, services, make_user):
        """The disabled state is not revealed without valid credentials."""
        make_user("alice", enabled=False)
        with pytest.raises(AuthenticationFailed):
            services.sessions.login("alice", "wrong-password1")

    def test_login_fails_when_refresh_token_cannot_be_stored(self, services, make_user, monkeypatch):
        """No access token is handed out without its refresh token."""
        make_user("alice")

        def broken(user):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(services.refresh_tokens, "create_for_user", broken)
        with pytest.raises(RuntimeError):
            services.sessions.login("alice", "Passw0rd1")

    def test_second_login_invalidates_first_refresh_token(self, services, make_user):
        make_user("alice")
        first = services.sessions.login("alice", "Passw0rd1")
        services.sessions.login("alice", "Passw0rd1")
        with pytest.raises(TokenNotFound):
            services.sessions.refresh(first.refresh_token)


class TestRefresh:
    def test_refresh_issues_new_access_token(self, services, make_user):
        """The same refresh token keeps working when rotation is off."""
        make_user("alice")
        tokens = services.sessions.login("alice", "Passw0rd1")

        refreshed = services.sessions.refresh(tokens.refresh_token)
        assert services.codec.verify(refreshed.access_token).subject == "alice"
        assert refreshed.refresh_token is None
        assert services.refresh_tokens.find_by_token(tokens.refresh_token) is not None

    def test_refresh_reads_current_roles(self, services, make_user):
        """Roles granted after login show up in refreshed access tokens."""
        make_user("alice", roles=["USER"])
        tokens = services.sessions.login("alice", "Passw0rd1")
        services.users.add_role("alice", "MODERATOR")

        refreshed = services.sessions.refresh(tokens.refresh_token)
        authorities = services.codec.verify(refreshed.access_token).authorities
        assert set(authorities) == {"ROLE_USER", "ROLE_MODERATOR"}

    def test_unknown_refresh_token(self, services):
        with pytest.raises(TokenNotFound):
            services.sessions.refresh("does-not-exist")

    def test_expired_refresh_token_is_deleted(self, services, make_user):
        """An expired refresh token fails once, then is gone."""
        make_user("alice")
        tokens = services.sessions.login("alice", "Passw0rd1")
        row = services.refresh_tokens.find_by_token(tokens.refresh_token)
        row.expires_at = utcnow() - timedelta(seconds=1)
        storage.save()

        with pytest.raises(TokenExpired):
            services.sessions.refresh(tokens.refresh_token)
        with pytest.raises(TokenNotFound):
            services.sessions.refresh(tokens.refresh_token)

    def test_refresh_for_disabled_account(self, services, make_user, user_repo):
        """A refresh token stops working while the account is disabled."""
        user = make_user("alice")
        tokens = services.sessions.login("alice", "Passw0rd1")
        user.enabled = False
        user_repo.save(user)
        with pytest.raises(AccountDisabled):
            services.sessions.refresh(tokens.refresh_token)

    def test_rotation_replaces_the_refresh_token(self, services, make_user, user_repo):
        """With rotation enabled the old refresh token stops working."""
        make_user("alice")
        rotating = SessionService(
            user_repo, services.codec, services.refresh_tokens, rotate_refresh_tokens=True
        )
        tokens = rotating.login("alice", "Passw0rd1")
        refreshed = rotating.refresh(tokens.refresh_token)

        assert refreshed.refresh_token and refreshed.refresh_token != tokens.refresh_token
        with pytest.raises(TokenNotFound):
            rotating.refresh(tokens.refresh_token)
        assert rotating.refresh(refreshed.refresh_token).access_token


class TestResolve:
    def _claims(self, services, username):
        return services.codec.verify(services.codec.issue_access(username, ["ROLE_USER"]))

    def test_fresh_token_resolves_to_its_user(self, services, make_user):
        make_user("alice")
        assert services.sessions.resolve(self._claims(services, "alice")).username == "alice"

    def test_unknown_subject(self, services):
        assert services.sessions.resolve(self._claims(services, "ghost")) is None

    def test_disabled_user(self, services, make_user):
        make_user("alice", enabled=False)
        assert services.sessions.resolve(self._claims(services, "alice")) is None

    def test_token_older_than_credential_change(self, services, make_user, user_repo):
        """Tokens minted before the latest credential change do not resolve."""
        user = make_user("alice")
        claims = self._claims(services, "alice")
        user.credentials_changed_at = claims.issued_at.replace(tzinfo=None) + timedelta(milliseconds=1)
        user_repo.save(user)
        assert services.sessions.resolve(claims) is None

    def test_token_for_a_newer_account_with_the_same_name(self, services, make_user):
        """A token minted before the account existed does not resolve to it."""
        claims = self._claims(services, "alice")
        make_user("alice")
        assert services.sessions.resolve(claims) is None


class TestLogout:
    def test_logout_deletes_refresh_token(self, services, make_user):
        make_user("alice")
        tokens = services.sessions.login("alice", "Passw0rd1")
        assert services.sessions.logout(tokens.refresh_token) == "Logged out successfully"
        with pytest.raises(TokenNotFound):
            services.sessions.refresh(tokens.refresh_token)

    def test_logout_with_unknown_token_succeeds(self, services):
        assert services.sessions.logout("unknown") == "Logged out successfully"


def test_authorities_for_prefixes_once():
    assert authorities_for(["ADMIN", "ROLE_USER"]) == ["ROLE_ADMIN", "ROLE_USER"]
    assert authorities_for(None) == []
