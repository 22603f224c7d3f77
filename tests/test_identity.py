"""
Tests for sign-in / sign-up and the local credential cache.
"""
import json
import os
import stat

import pytest

from habittracker.core.exceptions import AuthenticationError, EmailTakenError
from habittracker.credentials import CredentialCache, Credentials, silent_sign_in
from habittracker.models import User


class TestIdentityProvider:

    def test_sign_up_creates_empty_user_record(self, identity, db_session):
        session = identity.sign_up("New@Example.com ", "hunter22")

        user = db_session.get(User, session.user_id)
        assert user.email == "new@example.com"
        assert user.habits == []
        assert user.password_hash != "hunter22"

    def test_sign_in_returns_same_user(self, identity, user):
        session = identity.sign_in("ada@example.com", "secret123")
        assert session == user

    def test_wrong_password(self, identity, user):
        with pytest.raises(AuthenticationError):
            identity.sign_in("ada@example.com", "nope")

    def test_unknown_email(self, identity):
        with pytest.raises(AuthenticationError):
            identity.sign_in("ghost@example.com", "secret123")

    def test_duplicate_sign_up(self, identity, user):
        with pytest.raises(EmailTakenError):
            identity.sign_up("ada@example.com", "another1")

    def test_short_password(self, identity):
        with pytest.raises(AuthenticationError):
            identity.sign_up("short@example.com", "abc")

    def test_restore(self, identity, user):
        assert identity.restore(user.user_id) == user
        assert identity.restore(9999) is None


class TestCredentialCache:

    def test_load_without_file(self, tmp_path):
        assert CredentialCache(tmp_path / "creds.json").load() is None

    def test_save_and_load(self, tmp_path):
        cache = CredentialCache(tmp_path / "nested" / "creds.json")
        cache.save("ada@example.com", "secret123")

        assert cache.load() == Credentials("ada@example.com", "secret123")

    @pytest.mark.skipif(os.name != "posix", reason="permission bits")
    def test_file_is_owner_only(self, tmp_path):
        cache = CredentialCache(tmp_path / "creds.json")
        cache.save("ada@example.com", "secret123")

        mode = stat.S_IMODE(os.stat(cache.path).st_mode)
        assert mode & 0o077 == 0

    @pytest.mark.skipif(os.name != "posix", reason="permission bits")
    def test_existing_readable_file_is_tightened(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text("{}")
        os.chmod(path, 0o644)

        CredentialCache(path).save("ada@example.com", "secret123")

        assert stat.S_IMODE(os.stat(path).st_mode) & 0o077 == 0
        assert CredentialCache(path).load() == Credentials("ada@example.com", "secret123")

    def test_corrupt_file_treated_as_absent(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text("{not json")
        assert CredentialCache(path).load() is None

    def test_missing_keys_treated_as_absent(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text(json.dumps({"email": "ada@example.com"}))
        assert CredentialCache(path).load() is None

    def test_clear(self, tmp_path):
        cache = CredentialCache(tmp_path / "creds.json")
        cache.save("ada@example.com", "secret123")
        cache.clear()
        cache.clear()
        assert cache.load() is None


class TestSilentSignIn:

    def test_uses_cached_pair(self, tmp_path, identity, user):
        cache = CredentialCache(tmp_path / "creds.json")
        cache.save("ada@example.com", "secret123")

        assert silent_sign_in(cache, identity) == user

    def test_nothing_cached(self, tmp_path, identity):
        assert silent_sign_in(CredentialCache(tmp_path / "creds.json"), identity) is None

    def test_stale_password_falls_through(self, tmp_path, identity, user):
        cache = CredentialCache(tmp_path / "creds.json")
        cache.save("ada@example.com", "changed-since")

        assert silent_sign_in(cache, identity) is None
