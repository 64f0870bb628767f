"""Secret store boundary holding the comma-delimited API key string.

The core treats the store as opaque: it only reads and writes one string
under :data:`API_KEYS_SECRET`.

:class:`FernetSecretStore` keeps all secrets in one file, a Fernet token
wrapping a JSON object.  The Fernet key comes from
``Settings.credential_encryption_key``; losing it makes the stored keys
unrecoverable (they can simply be re-entered).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from smalltube.core.state import write_atomic

logger = logging.getLogger(__name__)

API_KEYS_SECRET: str = "apiKey"
"""Secret name under which the comma-delimited key string is stored."""


class SecretStore(Protocol):
    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str) -> None: ...

    def delete(self, name: str) -> None: ...


class InMemorySecretStore:
    """Non-persistent :class:`SecretStore`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self._secrets.get(name)

    def set(self, name: str, value: str) -> None:
        self._secrets[name] = value

    def delete(self, name: str) -> None:
        self._secrets.pop(name, None)


class FernetSecretStore:
    """File-backed :class:`SecretStore` encrypted with Fernet.

    Args:
        path: Location of the encrypted secrets file.
        key: URL-safe base64 Fernet key (``str`` or ``bytes``).

    Raises:
        ValueError: If ``key`` is empty or not a valid Fernet key.
    """

    def __init__(self, path: Path, key: str | bytes) -> None:
        if not key:
            raise ValueError(
                "credential_encryption_key is not set. "
                "Generate one with: from cryptography.fernet import Fernet; "
                "Fernet.generate_key().decode()"
            )
        self._path = path
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def _read_all(self) -> dict[str, str]:
        try:
            token = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            plaintext = self._fernet.decrypt(token)
            data = json.loads(plaintext)
        except (InvalidToken, ValueError) as exc:
            # A wrong key or a tampered file reads as empty; the next write
            # replaces it.
            logger.error("secrets: cannot decrypt %s: %s", self._path, type(exc).__name__)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, data: dict[str, str]) -> None:
        token = self._fernet.encrypt(json.dumps(data).encode("utf-8"))
        write_atomic(self._path, token)

    def get(self, name: str) -> str | None:
        return self._read_all().get(name)

    def set(self, name: str, value: str) -> None:
        data = self._read_all()
        data[name] = value
        self._write_all(data)

    def delete(self, name: str) -> None:
        data = self._read_all()
        if data.pop(name, None) is not None:
            self._write_all(data)
