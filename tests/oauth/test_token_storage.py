"""Tests for OAuth token storage module."""

import json
import os
import stat
from datetime import datetime, timedelta, timezone

import pytest

from xplorer.oauth.exceptions import TokenParseError, TokenStorageError
from xplorer.oauth.token_storage import TokenRecord, TokenStore

NOW = datetime(2026, 1, 25, 10, 0, 0, tzinfo=timezone.utc)


class TestTokenRecord:
    """Tests for TokenRecord dataclass."""

    def test_defaults(self):
        record = TokenRecord(access_token="access")
        assert record.refresh_token is None
        assert record.expires_at is None

    def test_no_expiry_never_expires(self):
        record = TokenRecord(access_token="access")
        assert record.is_expired is False
        assert record.expires_within(10_000) is False

    def test_is_expired(self):
        assert TokenRecord("a", expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)).is_expired
        assert not TokenRecord("a", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)).is_expired

    def test_expires_within_boundary(self):
        """now + seconds >= expires_at is inclusive."""
        record = TokenRecord("a", expires_at=NOW + timedelta(seconds=60))

        assert record.expires_within(60, now=NOW) is True
        assert record.expires_within(59, now=NOW) is False

    def test_from_token_response(self):
        record = TokenRecord.from_token_response(
            {
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_in": 7200,
                "token_type": "bearer",
                "scope": "tweet.read users.read",
            },
            now=NOW,
        )

        assert record.access_token == "new-access"
        assert record.refresh_token == "new-refresh"
        assert record.expires_at == NOW + timedelta(seconds=7200)

    def test_from_token_response_keeps_existing_refresh(self):
        """A response without refresh_token keeps the previous one."""
        record = TokenRecord.from_token_response(
            {"access_token": "new-access", "expires_in": 7200},
            existing_refresh_token="old-refresh",
            now=NOW,
        )
        assert record.refresh_token == "old-refresh"

    def test_from_token_response_without_expiry(self):
        record = TokenRecord.from_token_response({"access_token": "a"})
        assert record.expires_at is None
        assert record.refresh_token is None

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"access_token": ""},
            {"access_token": 42},
            {"access_token": "a", "expires_in": "soon"},
            ["not", "a", "dict"],
        ],
    )
    def test_from_token_response_invalid(self, data):
        with pytest.raises(TokenParseError):
            TokenRecord.from_token_response(data)

    def test_to_dict(self):
        record = TokenRecord("a", "r", NOW)
        assert record.to_dict() == {
            "access_token": "a",
            "refresh_token": "r",
            "expires_at": "2026-01-25T10:00:00+00:00",
        }

    def test_from_dict_accepts_zulu_and_naive(self):
        zulu = TokenRecord.from_dict({"access_token": "a", "expires_at": "2026-01-25T10:00:00Z"})
        naive = TokenRecord.from_dict({"access_token": "a", "expires_at": "2026-01-25T10:00:00"})
        assert zulu.expires_at == NOW
        assert naive.expires_at == NOW

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"access_token": None},
            {"access_token": "a", "refresh_token": 5},
            {"access_token": "a", "expires_at": 12345},
            {"access_token": "a", "expires_at": "yesterday"},
            "string",
        ],
    )
    def test_from_dict_invalid(self, data):
        with pytest.raises(TokenParseError):
            TokenRecord.from_dict(data)


class TestTokenStore:
    """Tests for TokenStore class."""

    @pytest.fixture
    def store(self, tmp_path):
        return TokenStore(str(tmp_path / "xplorertui" / "tokens.json"))

    def test_load_missing_returns_none(self, store):
        assert store.load() is None
        assert store.exists() is False

    def test_round_trip(self, store):
        record = TokenRecord("access", "refresh", NOW)
        store.save(record)
        assert store.load() == record

    def test_round_trip_with_none_fields(self, store):
        """Optional fields survive as null."""
        record = TokenRecord("access")
        store.save(record)

        assert store.load() == record
        assert json.loads(store.token_file.read_text()) == {
            "access_token": "access",
            "refresh_token": None,
            "expires_at": None,
        }

    def test_save_creates_directory(self, store):
        store.save(TokenRecord("a"))
        assert store.token_file.parent.is_dir()

    def test_save_sets_user_only_permissions(self, store):
        store.save(TokenRecord("a"))
        mode = stat.S_IMODE(os.stat(store.token_file).st_mode)
        assert mode == 0o600

    def test_save_overwrites(self, store):
        store.save(TokenRecord("first"))
        store.save(TokenRecord("second"))
        assert store.load().access_token == "second"

    def test_save_leaves_no_temp_files(self, store):
        store.save(TokenRecord("a"))
        store.save(TokenRecord("b"))
        assert [p.name for p in store.token_file.parent.iterdir()] == ["tokens.json"]

    def test_save_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        store = TokenStore(str(blocker / "tokens.json"))

        with pytest.raises(TokenStorageError):
            store.save(TokenRecord("a"))

    def test_load_malformed_json(self, store):
        """Malformed file is a hard error, not 'no tokens'."""
        store.token_file.parent.mkdir(parents=True)
        store.token_file.write_text("{not json")

        with pytest.raises(TokenParseError):
            store.load()

    def test_load_invalid_utf8(self, store):
        """Undecodable bytes are a parse error like any other malformed content."""
        store.token_file.parent.mkdir(parents=True)
        store.token_file.write_bytes(b'{"access_token": "\xff\xfe"}')

        with pytest.raises(TokenParseError):
            store.load()

    def test_save_writes_utf8(self, store):
        store.save(TokenRecord("t\u00f6ken"))

        assert "t\u00f6ken".encode("utf-8") in store.token_file.read_bytes()
        assert store.load().access_token == "t\u00f6ken"

    def test_load_wrong_shape(self, store):
        store.token_file.parent.mkdir(parents=True)
        store.token_file.write_text('{"refresh_token": "r"}')

        with pytest.raises(TokenParseError):
            store.load()

    def test_delete(self, store):
        store.save(TokenRecord("a"))

        assert store.delete() is True
        assert store.exists() is False
        assert store.delete() is False

    def test_expands_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        store = TokenStore("~/tokens.json")
        assert store.token_file == tmp_path / "tokens.json"

    def test_lock_creates_lock_file(self, store):
        with store.lock():
            store.save(TokenRecord("a"))
            assert store.lock_file.exists()
        assert store.lock_file.name == "tokens.json.lock"
        assert store.load().access_token == "a"
