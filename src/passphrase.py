"""
Session Passphrase Derivation
Combines the page location, the displayed channel name and the
server/channel secrets into the passphrase shared by every participant
"""

import re

from utils import hash_text

# Static client-side salt; changing it breaks compatibility with every
# message encrypted so far
SALT = "9AK0Q4Ga0o"

SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*://')


def strip_scheme(location):
    """'https://discord.com/channels/1/2' -> 'discord.com/channels/1/2'"""
    return SCHEME_PATTERN.sub('', location, count=1)


def scope_ids(location):
    """
    Compute the (broad, narrow) scope identifiers for a page location

    The broad (server) scope is the first three path segments of the
    location with the scheme removed; the narrow (channel) scope is the
    whole stripped location. The key store addresses secrets with the
    same two identifiers.

    Args:
        location (str): Full page URL

    Returns:
        tuple: (broad_scope_id, narrow_scope_id)
    """
    stripped = strip_scheme(location)
    segments = stripped.split('/')
    return '/'.join(segments[:3]), stripped


def derive_passphrase(location, broad_secret, narrow_secret, displayed_name):
    """
    Derive the session passphrase

    Field order is fixed: displayed name, location identity, broad secret,
    narrow secret, salt. A missing secret counts as the empty string, so an
    unconfigured scope produces a passphrase that simply fails to decrypt.
    """
    return hash_text(
        (displayed_name or '')
        + strip_scheme(location)
        + (broad_secret or '')
        + (narrow_secret or '')
        + SALT
    )


class PassphraseDeriver:
    """Looks up scope secrets in the key store and derives the passphrase"""

    def __init__(self, key_store):
        self.key_store = key_store

    def secrets_for(self, location):
        """Return (broad_secret, narrow_secret), '' for unset scopes"""
        broad_id, narrow_id = scope_ids(location)
        return (
            self.key_store.get(broad_id) or '',
            self.key_store.get(narrow_id) or '',
        )

    def for_page(self, location, displayed_name):
        broad_secret, narrow_secret = self.secrets_for(location)
        return derive_passphrase(location, broad_secret, narrow_secret, displayed_name)
