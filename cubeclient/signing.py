"""
Request signing with an ordered set of shared secrets.

The first secret signs; any secret in the set verifies, so a new secret can
be prepended while older clients keep working.
"""

from __future__ import annotations

import hashlib
import hmac

from cubeclient import config


class Signer:
    __slots__ = ("_secrets",)

    def __init__(self, secrets) -> None:
        self._secrets = config.load_secrets(secrets)

    @property
    def secrets(self) -> tuple[str, ...]:
        return self._secrets

    def sign(self, canonical: bytes) -> str:
        """Hex HMAC-SHA256 of *canonical* keyed with the current secret."""
        return _digest(self._secrets[0], canonical)

    def verify(self, canonical: bytes, signature: str) -> bool:
        if not isinstance(signature, str) or not signature:
            return False
        return any(
            hmac.compare_digest(_digest(secret, canonical), signature) for secret in self._secrets
        )


def _digest(secret: str, canonical: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), canonical, hashlib.sha256).hexdigest()
