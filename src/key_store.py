"""
Key Store
JSON-file backed key-value storage for scope secrets and the emoji map
"""

import re
from pathlib import Path

from passphrase import scope_ids
from utils import load_json, save_json

MIN_SECRET_LENGTH = 6


class SecretTooShort(ValueError):
    """Raised when a server or channel secret is shorter than the minimum"""

    def __init__(self, scope):
        self.scope = scope
        super().__init__(
            f"Your {scope} password is too short (minimum {MIN_SECRET_LENGTH} characters)"
        )


class KeyStore:
    """Persisted mapping of storage keys to values"""

    def __init__(self, path='data/storage.json'):
        """
        Initialize key store

        Args:
            path: JSON file holding the stored values (created on first write)
        """
        self.path = Path(path)
        self._data = self._load()

    def _load(self):
        """Load stored values from file"""
        if not self.path.exists():
            return {}

        try:
            data = load_json(self.path)
        except (OSError, ValueError) as e:
            print(f"[!] Error loading key store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            print(f"[!] Ignoring malformed key store {self.path}")
            return {}
        return data

    def _save(self, previous):
        """Write to disk; on failure the in-memory values go back to `previous`"""
        try:
            save_json(self._data, self.path)
        except OSError:
            self._data = previous
            raise

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        previous = dict(self._data)
        self._data[key] = value
        self._save(previous)

    def remove(self, key):
        previous = dict(self._data)
        if self._data.pop(key, None) is not None:
            self._save(previous)

    def reload(self):
        """Re-read the file; another process may have written to it"""
        self._data = self._load()

    def all(self):
        return dict(self._data)


def _clean_secret(secret):
    return re.sub(r'\s', '', secret or '')


def set_scope_secrets(store, location, server_key, channel_key=''):
    """
    Validate and store the server (broad) and channel (narrow) secrets

    Whitespace is removed from both secrets. The server secret is required;
    the channel secret is optional but must meet the minimum length when
    given. Nothing is written if either secret is rejected.

    Args:
        store (KeyStore): Destination store
        location (str): Page URL the secrets apply to
        server_key (str): Secret for the server scope
        channel_key (str): Secret for the channel scope (may be empty)

    Returns:
        tuple: (broad_scope_id, narrow_scope_id) the secrets were stored under

    Raises:
        SecretTooShort: If a secret fails validation
    """
    server_key = _clean_secret(server_key)
    channel_key = _clean_secret(channel_key)

    if len(server_key) < MIN_SECRET_LENGTH:
        raise SecretTooShort('server')
    if channel_key and len(channel_key) < MIN_SECRET_LENGTH:
        raise SecretTooShort('channel')

    broad_id, narrow_id = scope_ids(location)
    store.set(broad_id, server_key)
    if channel_key:
        store.set(narrow_id, channel_key)

    return broad_id, narrow_id


def remove_scope_secrets(store, location):
    """Delete both secrets bound to the location's scopes"""
    broad_id, narrow_id = scope_ids(location)
    store.remove(broad_id)
    store.remove(narrow_id)
    return broad_id, narrow_id
