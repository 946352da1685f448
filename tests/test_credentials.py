"""
Tests for credential pools and storage backends

Security note: keys used here are fakes. Never commit real API keys.
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import screen_solver.credentials as credentials_module
from screen_solver.credentials import (
    CredentialManager,
    CredentialPool,
    EncryptedFileBackend,
    EnvironmentBackend,
    KeyringBackend,
)


class TestCredentialPool:
    """Test the round-robin cursor"""

    def test_empty_pool_rejected(self):
        """A pool needs at least one key"""
        with pytest.raises(ValueError):
            CredentialPool([])

    def test_current_starts_at_first_key(self):
        pool = CredentialPool(["key-a", "key-b"])
        assert pool.current() == "key-a"
        assert pool.index == 0

    def test_advance_wraps(self):
        """Advancing past the end should wrap to the first key"""
        pool = CredentialPool(["key-a", "key-b", "key-c"])
        assert pool.advance() == "key-b"
        assert pool.advance() == "key-c"
        assert pool.advance() == "key-a"

    def test_full_cycle_returns_to_start(self):
        """N advances on a pool of size N return to the original key"""
        for size in (1, 2, 5):
            pool = CredentialPool([f"key-{i}" for i in range(size)], start=size - 1)
            original = pool.current()
            for _ in range(size):
                pool.advance()
            assert pool.current() == original

    def test_start_index_wraps(self):
        pool = CredentialPool(["key-a", "key-b"], start=3)
        assert pool.index == 1

    def test_add_new_key_becomes_current(self):
        pool = CredentialPool(["key-a"])
        pool.add("key-b")
        assert len(pool) == 2
        assert pool.current() == "key-b"

    def test_add_existing_key_moves_cursor(self):
        """Re-adding a known key should not duplicate it"""
        pool = CredentialPool(["key-a", "key-b", "key-c"])
        pool.add("key-b")
        assert len(pool) == 3
        assert pool.index == 1

    def test_repr_hides_keys(self):
        pool = CredentialPool(["secret-value-123"])
        assert "secret-value-123" not in repr(pool)


class TestEnvironmentBackend:
    """Test environment variable credential lookup"""

    def test_single_key(self):
        backend = EnvironmentBackend()

        with patch.dict(os.environ, {"OPENAI_API_KEY": "test-key"}, clear=True):
            assert backend.get("openai") == ["test-key"]

    def test_key_list_then_single_keys(self):
        """Comma-separated lists come first and duplicates are dropped"""
        backend = EnvironmentBackend()
        env = {
            "GEMINI_API_KEYS": "key-1, key-2,,key-3",
            "GEMINI_API_KEY": "key-2",
            "GOOGLE_API_KEY": "key-4",
        }

        with patch.dict(os.environ, env, clear=True):
            assert backend.get("gemini") == ["key-1", "key-2", "key-3", "key-4"]

    def test_missing(self):
        backend = EnvironmentBackend()

        with patch.dict(os.environ, {}, clear=True):
            assert backend.get("nonexistent") == []

    def test_set_and_delete(self):
        """Setting writes the list variable (non-persistent)"""
        backend = EnvironmentBackend()

        with patch.dict(os.environ, {}, clear=True):
            assert backend.set("openai", ["key-a", "key-b"]) is True
            assert os.environ["OPENAI_API_KEYS"] == "key-a,key-b"
            assert backend.delete("openai") is True
            assert "OPENAI_API_KEYS" not in os.environ


class TestKeyringBackend:
    """Test keyring storage of key lists"""

    def test_get_json_list(self):
        fake_keyring = MagicMock()
        fake_keyring.get_password.return_value = '["key-a", "key-b"]'

        with patch.object(credentials_module, "keyring", fake_keyring):
            assert KeyringBackend().get("gemini") == ["key-a", "key-b"]

    def test_get_legacy_single_value(self):
        """A plain stored string is treated as one key"""
        fake_keyring = MagicMock()
        fake_keyring.get_password.return_value = "plain-key-value"

        with patch.object(credentials_module, "keyring", fake_keyring):
            assert KeyringBackend().get("gemini") == ["plain-key-value"]

    def test_unavailable_keyring(self):
        """A failing keyring reports itself unavailable"""
        fake_keyring = MagicMock()
        fake_keyring.get_password.side_effect = RuntimeError("no backend")

        with patch.object(credentials_module, "keyring", fake_keyring):
            backend = KeyringBackend()
            assert backend.is_available is False
            assert backend.get("gemini") == []
            assert backend.set("gemini", ["key-a"]) is False


class TestEncryptedFileBackend:
    """Test the encrypted credentials file"""

    @pytest.fixture
    def backend(self, tmp_path):
        with patch.object(
            EncryptedFileBackend, "_get_machine_id", return_value=b"m" * 32
        ):
            return EncryptedFileBackend(path=tmp_path / "credentials.enc")

    def test_store_and_load(self, backend):
        assert backend.is_available is True
        assert backend.set("gemini", ["key-a", "key-b"]) is True
        assert backend.get("gemini") == ["key-a", "key-b"]
        assert backend.get("openai") == []

    def test_file_is_not_plain_text(self, backend):
        backend.set("openai", ["very-secret-key-value"])
        assert b"very-secret-key-value" not in backend.path.read_bytes()

    def test_delete(self, backend):
        backend.set("gemini", ["key-a"])
        assert backend.delete("gemini") is True
        assert backend.get("gemini") == []


class TestCredentialManager:
    """Test merging and storing across backends"""

    def test_merges_backends_in_order(self):
        """Keys from higher-priority backends come first"""
        primary = MagicMock(spec=EnvironmentBackend)
        primary.is_available = True
        primary.get.return_value = ["key-a", "key-b"]
        fallback = EnvironmentBackend()

        manager = CredentialManager(backends=[primary, fallback])
        with patch.dict(os.environ, {"GEMINI_API_KEYS": "key-b,key-c"}, clear=True):
            assert manager.get_api_keys("gemini") == ["key-a", "key-b", "key-c"]

    def test_build_pool(self):
        manager = CredentialManager(backends=[EnvironmentBackend()])

        with patch.dict(os.environ, {"OPENAI_API_KEYS": "key-a,key-b"}, clear=True):
            pool = manager.build_pool("openai")

        assert pool is not None
        assert len(pool) == 2
        assert pool.current() == "key-a"

    def test_build_pool_without_keys(self):
        manager = CredentialManager(backends=[EnvironmentBackend()])

        with patch.dict(os.environ, {}, clear=True):
            assert manager.build_pool("openai") is None

    def test_add_rejects_short_keys(self):
        manager = CredentialManager(backends=[EnvironmentBackend()])
        assert manager.add_api_key("openai", "short") is False

    def test_add_appends_and_clears_cache(self):
        manager = CredentialManager(backends=[EnvironmentBackend()])

        with patch.dict(os.environ, {"OPENAI_API_KEYS": "existing-key-1"}, clear=True):
            assert manager.get_api_keys("openai") == ["existing-key-1"]
            assert manager.add_api_key("openai", "another-key-2") is True
            assert manager.get_api_keys("openai") == ["existing-key-1", "another-key-2"]
