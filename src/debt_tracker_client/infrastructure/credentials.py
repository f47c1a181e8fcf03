"""Credential store implementations for infrastructure.

Usage example:
    from pathlib import Path

    from debt_tracker_client.infrastructure.credentials import JsonFileCredentialStore

    store = JsonFileCredentialStore(Path("~/.config/debt-tracker/credentials.json").expanduser())
    store.set(AUTH_TOKEN_KEY, "token")
    token = store.get(AUTH_TOKEN_KEY)
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import override

from pydantic import TypeAdapter, ValidationError

from ..exceptions import CredentialStoreError
from ..protocols import CredentialStore

AUTH_TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"
_FILE_MODE = 0o600

_STORE_SCHEMA = TypeAdapter(dict[str, str])


def _empty_values() -> dict[str, str]:
    return {}


@dataclass
class InMemoryCredentialStore(CredentialStore):
    """Process-local credential store."""

    _values: dict[str, str] = field(default_factory=_empty_values)

    @override
    def get(self, key: str) -> str | None:
        return self._values.get(key)

    @override
    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    @override
    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileCredentialStore(CredentialStore):
    """Credential store persisted as a single JSON object on disk.

    The file is rewritten atomically and restricted to the owning user.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            return _STORE_SCHEMA.validate_json(self.path.read_bytes())
        except ValidationError as exc:
            raise CredentialStoreError(str(self.path), "expected a JSON object of strings") from exc

    def _write(self, values: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.unlink(missing_ok=True)
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(values, indent=2, sort_keys=True))
        tmp.replace(self.path)

    @override
    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    @override
    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._read()
            values[key] = value
            self._write(values)

    @override
    def delete(self, key: str) -> None:
        with self._lock:
            values = self._read()
            if key not in values:
                return
            del values[key]
            self._write(values)
