"""
Tests for tasknode/signing.py

Tests ed25519 verification of base58 signed payloads.
"""

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from tasknode.signing import (
    Ed25519Verifier,
    InvalidSignatureError,
    identity_of,
    sign_payload,
)


class TestEd25519Verifier:
    """Tests for Ed25519Verifier."""

    def test_valid_payload_returns_message(self, private_key, node_identity):
        """Test a good signature yields the embedded message."""
        payload = sign_payload(private_key, '"abc123"')
        assert Ed25519Verifier().verify(payload, node_identity) == '"abc123"'

    def test_bytes_message(self, private_key, node_identity):
        payload = sign_payload(private_key, b"hello")
        assert Ed25519Verifier().verify(payload, node_identity) == "hello"

    def test_wrong_identity(self, private_key):
        """Test a payload signed by another key is rejected."""
        payload = sign_payload(private_key, "hash")
        other = identity_of(Ed25519PrivateKey.generate())

        with pytest.raises(InvalidSignatureError):
            Ed25519Verifier().verify(payload, other)

    def test_tampered_message(self, private_key, node_identity):
        """Test changing the message after signing is caught."""
        signed = base58.b58decode(sign_payload(private_key, "hash-one"))
        tampered = base58.b58encode(signed[:64] + b"hash-two").decode("ascii")

        with pytest.raises(InvalidSignatureError):
            Ed25519Verifier().verify(tampered, node_identity)

    def test_not_base58(self, node_identity):
        with pytest.raises(InvalidSignatureError):
            Ed25519Verifier().verify("0OIl not base58", node_identity)

    def test_short_payload(self, node_identity):
        short = base58.b58encode(b"x" * 10).decode("ascii")
        with pytest.raises(InvalidSignatureError):
            Ed25519Verifier().verify(short, node_identity)

    def test_identity_wrong_length(self, private_key):
        payload = sign_payload(private_key, "hash")
        bad_identity = base58.b58encode(b"\x01" * 16).decode("ascii")

        with pytest.raises(InvalidSignatureError):
            Ed25519Verifier().verify(payload, bad_identity)


class TestIdentity:

    def test_identity_is_32_bytes(self, node_identity):
        assert len(base58.b58decode(node_identity)) == 32
