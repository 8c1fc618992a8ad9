from __future__ import annotations
import base64
import logging

import nacl.exceptions
from nacl.signing import SigningKey, VerifyKey

from .errors import CryptoError
from .models import OwnedIdentity

logger = logging.getLogger(__name__)


def generate_owned_identity(alias: str) -> OwnedIdentity:
    """Fresh Ed25519 keypair bound to ``alias``."""
    try:
        sk = SigningKey.generate()
    except nacl.exceptions.CryptoError as e:
        logger.error("key generation failed for alias %r: %s", alias, e)
        raise CryptoError(f"key generation failed: {e}") from e
    return OwnedIdentity(public_key=bytes(sk.verify_key), secret_key=bytes(sk), alias=alias)


def sign(identity: OwnedIdentity, payload: bytes) -> bytes:
    try:
        return SigningKey(identity.secret_key).sign(payload).signature
    except (nacl.exceptions.CryptoError, TypeError, ValueError) as e:
        raise CryptoError(f"signing failed: {e}") from e


def verify(signature: bytes, payload: bytes, public_key: bytes) -> bool:
    try:
        VerifyKey(public_key).verify(payload, signature)
        return True
    except (nacl.exceptions.CryptoError, TypeError, ValueError):
        return False


def format_address(public_key: bytes) -> str:
    """Return 'mesh:<pub_b64>' for sharing."""
    return f"mesh:{base64.b64encode(public_key).decode('ascii')}"
