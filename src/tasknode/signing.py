"""
tasknode/signing.py

Ed25519 signed-message verification for node identities.

A node identity is the base58 encoding of its 32-byte ed25519 public key.
A signed payload is the base58 encoding of ``signature || message``
(64-byte detached signature followed by the message bytes), the format
node software uses when it signs the hash of a submission.

Usage:
    from tasknode.signing import Ed25519Verifier, sign_payload

    payload = sign_payload(private_key, '"3f2a..."')
    message = Ed25519Verifier().verify(payload, identity)
"""

from abc import ABC, abstractmethod
from typing import Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

SIGNATURE_LENGTH = 64
PUBLIC_KEY_LENGTH = 32


class InvalidSignatureError(Exception):
    """Signed payload does not verify against the claimed identity."""
    pass


class SignatureVerifier(ABC):
    """Verifies a signed payload and returns its embedded message."""

    @abstractmethod
    def verify(self, signed_payload: str, claimed_identity: str) -> str:
        """
        Verify a signed payload.

        Args:
            signed_payload: Encoded signature || message
            claimed_identity: Identity the payload claims to come from

        Returns:
            The embedded message

        Raises:
            InvalidSignatureError: If the payload does not verify
        """
        pass


class Ed25519Verifier(SignatureVerifier):
    """Verifier for base58 ed25519 identities and signed payloads."""

    def verify(self, signed_payload: str, claimed_identity: str) -> str:
        try:
            key_bytes = base58.b58decode(claimed_identity)
            signed = base58.b58decode(signed_payload)
        except ValueError as e:
            raise InvalidSignatureError(f"Undecodable key or payload: {e}") from e

        if len(key_bytes) != PUBLIC_KEY_LENGTH:
            raise InvalidSignatureError(
                f"Identity is {len(key_bytes)} bytes, expected {PUBLIC_KEY_LENGTH}"
            )
        if len(signed) < SIGNATURE_LENGTH:
            raise InvalidSignatureError("Signed payload shorter than a signature")

        signature, message = signed[:SIGNATURE_LENGTH], signed[SIGNATURE_LENGTH:]
        try:
            Ed25519PublicKey.from_public_bytes(key_bytes).verify(signature, message)
        except InvalidSignature as e:
            raise InvalidSignatureError(
                f"Signature does not match identity {claimed_identity}"
            ) from e

        try:
            return message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignatureError("Signed message is not UTF-8 text") from e


def identity_of(private_key: Ed25519PrivateKey) -> str:
    """Base58 identity for a private key."""
    raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base58.b58encode(raw).decode("ascii")


def sign_payload(private_key: Ed25519PrivateKey, message: Union[str, bytes]) -> str:
    """Produce a base58 ``signature || message`` payload."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    signature = private_key.sign(message)
    return base58.b58encode(signature + message).decode("ascii")
