"""Ed25519 request signature verification."""

from typing import Protocol, runtime_checkable

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = structlog.get_logger()


@runtime_checkable
class SignatureVerifier(Protocol):
    def verify(self, raw_body: bytes, signature: str, timestamp: str) -> bool: ...


class Ed25519Verifier:
    """Checks ``signature`` over ``timestamp + raw_body`` with the app's public key."""

    def __init__(self, public_key_hex: str) -> None:
        self._key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))

    def verify(self, raw_body: bytes, signature: str, timestamp: str) -> bool:
        try:
            sig = bytes.fromhex(signature)
        except ValueError:
            logger.debug("signature_not_hex")
            return False
        try:
            self._key.verify(sig, timestamp.encode() + raw_body)
        except InvalidSignature:
            return False
        return True
