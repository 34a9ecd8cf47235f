"""Unit tests for did:key identities."""

import base58
import pytest
from dshare.security.identity import (
    WILDCARD,
    Identity,
    is_did,
    parse_audience,
    public_key_from_did,
    verify_signature,
)


def test_generated_identity_is_did_key():
    identity = Identity.generate()
    assert identity.did.startswith("did:key:z6Mk")
    decoded = base58.b58decode(identity.did[len("did:key:z"):])
    assert decoded[:2] == b"\xed\x01"
    assert len(decoded) == 34


def test_seed_roundtrip_keeps_did():
    identity = Identity.generate()
    restored = Identity.from_seed(identity.seed())
    assert restored.did == identity.did


def test_from_seed_rejects_wrong_length():
    with pytest.raises(ValueError):
        Identity.from_seed(b"short")


def test_sign_and_verify():
    identity = Identity.generate()
    sig = identity.sign(b"message")
    assert verify_signature(identity.did, sig, b"message")
    assert not verify_signature(identity.did, sig, b"messagf")
    assert not verify_signature(Identity.generate().did, sig, b"message")


def test_verify_signature_with_non_key_did_is_false():
    assert not verify_signature("did:web:example.com", b"\x00" * 64, b"m")
    assert not verify_signature("did:key:z0OIl", b"\x00" * 64, b"m")


def test_public_key_from_did_rejects_other_codecs():
    # secp256k1 multicodec prefix instead of ed25519
    did = "did:key:z" + base58.b58encode(b"\xe7\x01" + b"\x02" * 33).decode()
    with pytest.raises(ValueError):
        public_key_from_did(did)


def test_repr_hides_private_key():
    identity = Identity.generate()
    assert identity.seed().hex() not in repr(identity)


@pytest.mark.parametrize("value", [None, "", "  ", "*"])
def test_parse_audience_wildcard(value):
    assert parse_audience(value) == WILDCARD


@pytest.mark.parametrize("value", ["did:key:z123", "did:web:example.com", "did:mailto:example.com:alice"])
def test_parse_audience_accepts_dids(value):
    assert parse_audience(value) == value
    assert is_did(value)


@pytest.mark.parametrize("value", ["alice@example.com", "did:", "did:key:", "key:z123"])
def test_parse_audience_rejects_non_dids(value):
    with pytest.raises(ValueError, match="not a DID"):
        parse_audience(value)
