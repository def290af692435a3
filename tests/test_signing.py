import pytest

from relay.errors import Expired, InvalidSignature
from relay.signing import LinkSigner


def flip_bit(signature: str, bit: int) -> str:
    raw = bytearray(bytes.fromhex(signature))
    raw[bit // 8] ^= 1 << (bit % 8)
    return raw.hex()


def test_sign_is_deterministic_across_instances():
    a = LinkSigner("shared-secret")
    b = LinkSigner(b"shared-secret")
    assert a.sign(object_id="abc", expires_at=100) == b.sign(object_id="abc", expires_at=100)


def test_sign_depends_on_every_field():
    signer = LinkSigner("secret")
    base = signer.sign(object_id="abc", expires_at=100)
    assert signer.sign(object_id="abd", expires_at=100) != base
    assert signer.sign(object_id="abc", expires_at=101) != base
    assert LinkSigner("other").sign(object_id="abc", expires_at=100) != base


@pytest.mark.parametrize(
    "object_id,expires_at",
    [("a", 1), ("0f" * 16, 1_700_000_300), ("id|with|pipes", 2**40)],
)
def test_verify_accepts_fresh_signature(object_id, expires_at):
    signer = LinkSigner("secret")
    signature = signer.sign(object_id=object_id, expires_at=expires_at)
    signer.verify(object_id=object_id, expires_at=expires_at, signature=signature, now=expires_at - 1)


def test_any_single_bit_flip_is_rejected():
    signer = LinkSigner("secret")
    signature = signer.sign(object_id="abc", expires_at=500)
    for bit in range(len(signature) * 4):
        with pytest.raises(InvalidSignature):
            signer.verify(object_id="abc", expires_at=500, signature=flip_bit(signature, bit), now=100)


def test_tampered_expiry_is_rejected_as_invalid_signature():
    signer = LinkSigner("secret")
    signature = signer.sign(object_id="abc", expires_at=500)
    with pytest.raises(InvalidSignature):
        signer.verify(object_id="abc", expires_at=5000, signature=signature, now=100)


@pytest.mark.parametrize("now", [500, 501, 10_000])
def test_verify_rejects_expired_link(now):
    signer = LinkSigner("secret")
    signature = signer.sign(object_id="abc", expires_at=500)
    with pytest.raises(Expired):
        signer.verify(object_id="abc", expires_at=500, signature=signature, now=now)


def test_invalid_signature_wins_over_expiry():
    signer = LinkSigner("secret")
    with pytest.raises(InvalidSignature):
        signer.verify(object_id="abc", expires_at=1, signature="not-hex-at-all", now=100)


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        LinkSigner("")
