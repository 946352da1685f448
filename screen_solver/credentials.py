"""
Credential Storage and Key Pools for Screen Solver
==================================================
Stores ordered lists of API keys per provider using multiple backends:
1. System keyring (most secure - uses OS credential store)
2. Encrypted file with machine-specific key
3. Environment variables (fallback)

Keys are handed to the orchestrator as CredentialPool objects, which
rotate round-robin when a key fails.

NEVER stores API keys in plain text or in code.
"""

import base64
import getpass
import hashlib
import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import keyring
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

# Constants
SERVICE_NAME = "screen_solver"
CONFIG_DIR = Path.home() / ".screen_solver"
ENCRYPTED_CREDS_FILE = CONFIG_DIR / "credentials.enc"
MIN_KEY_LENGTH = 10


class CredentialPool:
    """
    Ordered, non-empty list of API keys with a round-robin cursor.

    A key that fails is never removed; it is only skipped by advancing
    past it, so it will be tried again on a later request.
    """

    def __init__(self, keys: Sequence[str], start: int = 0):
        if not keys:
            raise ValueError("CredentialPool requires at least one key")
        self._keys: List[str] = list(keys)
        self._index = start % len(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"CredentialPool(size={len(self._keys)}, index={self._index})"

    @property
    def index(self) -> int:
        return self._index

    def current(self) -> str:
        return self._keys[self._index]

    def advance(self) -> str:
        """Move to the next key, wrapping to the first, and return it."""
        self._index = (self._index + 1) % len(self._keys)
        logger.debug(f"Switching to key at index {self._index} of {len(self._keys)}")
        return self._keys[self._index]

    def add(self, api_key: str) -> None:
        """Add a key (or reuse an identical one) and make it current."""
        if api_key in self._keys:
            self._index = self._keys.index(api_key)
        else:
            self._keys.append(api_key)
            self._index = len(self._keys) - 1


class CredentialBackend(ABC):
    """Abstract base class for credential storage backends"""

    @abstractmethod
    def get(self, provider: str) -> List[str]:
        """Retrieve the ordered API keys for provider"""
        pass

    @abstractmethod
    def set(self, provider: str, api_keys: List[str]) -> bool:
        """Replace the stored API keys for provider"""
        pass

    @abstractmethod
    def delete(self, provider: str) -> bool:
        """Remove all API keys for provider"""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if this backend is available on the system"""
        pass


class KeyringBackend(CredentialBackend):
    """Uses OS keychain/keyring; each provider entry is a JSON list of keys"""

    @property
    def is_available(self) -> bool:
        try:
            keyring.get_password(SERVICE_NAME, "__test__")
            return True
        except Exception:
            return False

    def get(self, provider: str) -> List[str]:
        if not self.is_available:
            return []
        try:
            stored = keyring.get_password(SERVICE_NAME, provider)
        except Exception as e:
            logger.warning(f"Keyring get failed for {provider}: {e}")
            return []
        if not stored:
            return []
        try:
            keys = json.loads(stored)
        except ValueError:
            # Older single-key entry
            return [stored]
        return [k for k in keys if isinstance(k, str)] if isinstance(keys, list) else []

    def set(self, provider: str, api_keys: List[str]) -> bool:
        if not self.is_available:
            return False
        try:
            keyring.set_password(SERVICE_NAME, provider, json.dumps(api_keys))
            logger.info(f"Stored {len(api_keys)} credential(s) in keyring for: {provider}")
            return True
        except Exception as e:
            logger.error(f"Keyring set failed for {provider}: {e}")
            return False

    def delete(self, provider: str) -> bool:
        if not self.is_available:
            return False
        try:
            keyring.delete_password(SERVICE_NAME, provider)
            return True
        except Exception as e:
            logger.warning(f"Keyring delete failed for {provider}: {e}")
            return False


class EncryptedFileBackend(CredentialBackend):
    """Encrypted file storage using machine-specific key derivation"""

    def __init__(self, path: Path = ENCRYPTED_CREDS_FILE):
        self.path = path
        self._fernet: Optional[Fernet] = None
        self._init_encryption()

    @property
    def is_available(self) -> bool:
        return self._fernet is not None

    def _get_machine_id(self) -> bytes:
        """Generate machine-specific identifier for key derivation"""
        identifiers = []

        if sys.platform == "linux":
            try:
                with open("/etc/machine-id", "r") as f:
                    identifiers.append(f.read().strip())
            except OSError:
                pass

        identifiers.extend([
            getpass.getuser(),
            os.uname().nodename if hasattr(os, "uname") else "unknown",
        ])

        combined = ":".join(identifiers)
        return hashlib.sha256(combined.encode()).digest()

    def _init_encryption(self):
        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=b"screen_solver_v1",
                iterations=480000,
            )
            key = base64.urlsafe_b64encode(kdf.derive(self._get_machine_id()))
            self._fernet = Fernet(key)
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except Exception as e:
            logger.error(f"Failed to initialize encryption: {e}")
            self._fernet = None

    def _load_credentials(self) -> Dict[str, List[str]]:
        if not self.is_available or not self.path.exists():
            return {}

        try:
            with open(self.path, "rb") as f:
                encrypted = f.read()
            decrypted = self._fernet.decrypt(encrypted)
            return json.loads(decrypted.decode())
        except Exception as e:
            logger.error(f"Failed to load credentials: {e}")
            return {}

    def _save_credentials(self, creds: Dict[str, List[str]]) -> bool:
        if not self.is_available:
            return False

        try:
            encrypted = self._fernet.encrypt(json.dumps(creds).encode())

            # Write atomically with restricted permissions
            temp_file = self.path.with_suffix(".tmp")
            with open(temp_file, "wb") as f:
                f.write(encrypted)
            os.chmod(temp_file, 0o600)
            temp_file.replace(self.path)
            return True
        except Exception as e:
            logger.error(f"Failed to save credentials: {e}")
            return False

    def get(self, provider: str) -> List[str]:
        return list(self._load_credentials().get(provider, []))

    def set(self, provider: str, api_keys: List[str]) -> bool:
        creds = self._load_credentials()
        creds[provider] = list(api_keys)
        success = self._save_credentials(creds)
        if success:
            logger.info(f"Stored {len(api_keys)} credential(s) in encrypted file for: {provider}")
        return success

    def delete(self, provider: str) -> bool:
        creds = self._load_credentials()
        if provider in creds:
            del creds[provider]
            return self._save_credentials(creds)
        return True


class EnvironmentBackend(CredentialBackend):
    """
    Environment variable fallback (least secure, but always available).

    ``<PROVIDER>_API_KEYS`` holds a comma-separated list; the single-key
    variables are appended after it.
    """

    ENV_VAR_MAP = {
        "openai": ("OPENAI_API_KEYS", "OPENAI_API_KEY"),
        "gemini": ("GEMINI_API_KEYS", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
    }

    @property
    def is_available(self) -> bool:
        return True

    def _get_env_vars(self, provider: str) -> tuple:
        return self.ENV_VAR_MAP.get(
            provider.lower(),
            (f"{provider.upper()}_API_KEYS", f"{provider.upper()}_API_KEY"),
        )

    def get(self, provider: str) -> List[str]:
        keys: List[str] = []
        for env_var in self._get_env_vars(provider):
            value = os.environ.get(env_var, "")
            for key in value.split(","):
                key = key.strip()
                if key and key not in keys:
                    keys.append(key)
        return keys

    def set(self, provider: str, api_keys: List[str]) -> bool:
        # Can't persistently set environment variables
        os.environ[self._get_env_vars(provider)[0]] = ",".join(api_keys)
        logger.warning(f"Set API keys in environment (non-persistent) for: {provider}")
        return True

    def delete(self, provider: str) -> bool:
        for env_var in self._get_env_vars(provider):
            os.environ.pop(env_var, None)
        return True


class CredentialManager:
    """
    Main credential manager with fallback chain:
    1. System keyring (most secure)
    2. Encrypted file (secure, portable)
    3. Environment variables (fallback)
    """

    def __init__(self, backends: Optional[List[CredentialBackend]] = None):
        if backends is None:
            backends = [
                KeyringBackend(),
                EncryptedFileBackend(),
                EnvironmentBackend(),
            ]
        self._backends = backends
        self._cache: Dict[str, List[str]] = {}
        self._validate_security()

    def _validate_security(self):
        """Log security posture on initialization"""
        available = [type(b).__name__ for b in self._backends if b.is_available]
        logger.info(f"Available credential backends: {available}")

        if not any(
            isinstance(b, (KeyringBackend, EncryptedFileBackend)) and b.is_available
            for b in self._backends
        ):
            logger.warning(
                "No secure credential storage available. "
                "API keys will only be read from the environment."
            )

    def get_api_keys(self, provider: str) -> List[str]:
        """
        Ordered API keys for a provider, merged across backends in
        priority order with duplicates removed. Results are cached.
        """
        provider = provider.lower()
        if provider in self._cache:
            return list(self._cache[provider])

        keys: List[str] = []
        for backend in self._backends:
            if not backend.is_available:
                continue
            for key in backend.get(provider):
                if key not in keys:
                    keys.append(key)

        if keys:
            self._cache[provider] = keys
            logger.debug(f"Retrieved {len(keys)} credential(s) for {provider}")
        else:
            logger.warning(f"No credential found for provider: {provider}")
        return list(keys)

    def add_api_key(self, provider: str, api_key: str) -> bool:
        """Append an API key in the most secure available backend."""
        provider = provider.lower()

        if not api_key or len(api_key) < MIN_KEY_LENGTH:
            logger.error("Invalid API key: too short")
            return False

        for backend in self._backends:
            if not backend.is_available:
                continue
            keys = backend.get(provider)
            if api_key not in keys:
                keys.append(api_key)
            if backend.set(provider, keys):
                self._cache.pop(provider, None)
                return True
        return False

    def delete_api_keys(self, provider: str) -> bool:
        """Remove all keys for a provider from all backends"""
        provider = provider.lower()
        self._cache.pop(provider, None)

        success = True
        for backend in self._backends:
            if backend.is_available:
                success = backend.delete(provider) and success
        return success

    def build_pool(self, provider: str) -> Optional[CredentialPool]:
        keys = self.get_api_keys(provider)
        return CredentialPool(keys) if keys else None

    def clear_cache(self):
        self._cache.clear()


# Global singleton instance
_manager: Optional[CredentialManager] = None


def get_credential_manager() -> CredentialManager:
    """Get the global credential manager instance"""
    global _manager
    if _manager is None:
        _manager = CredentialManager()
    return _manager


def get_api_keys(provider: str) -> List[str]:
    """Get the ordered API keys for a provider"""
    return get_credential_manager().get_api_keys(provider)


def add_api_key(provider: str, api_key: str) -> bool:
    """Store an additional API key for a provider"""
    return get_credential_manager().add_api_key(provider, api_key)


def configure_credentials_interactive():
    """Interactive CLI for configuring API credentials"""
    print("\nScreen Solver Credential Configuration\n")
    print("=" * 50)

    manager = get_credential_manager()

    providers = [
        ("openai", "OpenAI (primary, multimodal chat)"),
        ("gemini", "Google Gemini (secondary, vision + text)"),
    ]

    for provider_id, provider_name in providers:
        count = len(manager.get_api_keys(provider_id))
        status = f"{count} key(s) configured" if count else "not set"
        print(f"\n{provider_name}: [{status}]")

        response = input(f"Configure {provider_id}? (y/N/clear): ").strip().lower()

        if response == "clear":
            manager.delete_api_keys(provider_id)
            print(f"  -> Cleared {provider_id} credentials")
        elif response == "y":
            # Several keys may be entered; an empty line finishes
            while True:
                api_key = getpass.getpass(f"  Add API key for {provider_id} (blank to finish): ")
                if not api_key:
                    break
                if manager.add_api_key(provider_id, api_key):
                    print(f"  -> Saved key for {provider_id}")
                else:
                    print(f"  -> Failed to save key for {provider_id}")

    print("\n" + "=" * 50)
    print("Configuration complete!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    configure_credentials_interactive()
