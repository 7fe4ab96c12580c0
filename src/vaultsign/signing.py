"""Canonical (low-S) ECDSA signing and strict verification over digests.

Ledgers reject malleable signatures, so every signature produced here has
``s <= n / 2`` and every signature with ``s > n / 2`` is refused on verify,
even when it is mathematically valid.
"""

from __future__ import annotations

import hashlib
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from vaultsign.errors import (
    MalformedInputError,
    MalformedSignatureError,
    NonCanonicalSignatureError,
    UnsupportedKeyTypeError,
)

CURVE_ORDERS = {
    "secp224r1": int(
        "FFFFFFFF" "FFFFFFFF" "FFFFFFFF" "FFFF16A2"
        "E0B8F03E" "13DD2945" "5C5C2A3D",
        16,
    ),
    "secp256r1": int(
        "FFFFFFFF" "00000000" "FFFFFFFF" "FFFFFFFF"
        "BCE6FAAD" "A7179E84" "F3B9CAC2" "FC632551",
        16,
    ),
    "secp384r1": int(
        "FFFFFFFF" "FFFFFFFF" "FFFFFFFF" "FFFFFFFF"
        "FFFFFFFF" "FFFFFFFF" "C7634D81" "F4372DDF"
        "581A0DB2" "48B0A77A" "ECEC196A" "CCC52973",
        16,
    ),
    "secp521r1": int(
        "01FF"
        "FFFFFFFF" "FFFFFFFF" "FFFFFFFF" "FFFFFFFF"
        "FFFFFFFF" "FFFFFFFF" "FFFFFFFF" "FFFFFFFA"
        "51868783" "BF2F966B" "7FCC0148" "F709A5D0"
        "3BB5C9B8" "899C47AE" "BB6FB71E" "91386409",
        16,
    ),
}

_PREHASH_BY_LENGTH = {
    20: hashes.SHA1,
    28: hashes.SHA224,
    32: hashes.SHA256,
    48: hashes.SHA384,
    64: hashes.SHA512,
}


def curve_order(public_key: ec.EllipticCurvePublicKey) -> int:
    order = CURVE_ORDERS.get(public_key.curve.name)
    if order is None:
        raise UnsupportedKeyTypeError(
            f"curve not recognized [{public_key.curve.name}]",
            key_type=public_key.curve.name,
        )
    return order


def half_order(public_key: ec.EllipticCurvePublicKey) -> int:
    return curve_order(public_key) >> 1


def is_low_s(public_key: ec.EllipticCurvePublicKey, s: int) -> bool:
    return s <= half_order(public_key)


def to_low_s(public_key: ec.EllipticCurvePublicKey, s: int) -> int:
    if is_low_s(public_key, s):
        return s
    return curve_order(public_key) - s


def marshal_signature(r: int, s: int) -> bytes:
    return encode_dss_signature(r, s)


def unmarshal_signature(signature: bytes) -> tuple[int, int]:
    try:
        r, s = decode_dss_signature(signature)
    except (ValueError, TypeError) as error:
        raise MalformedSignatureError(f"failed unmarshalling signature [{error}]") from error
    if r <= 0:
        raise MalformedSignatureError("invalid signature, r must be larger than zero")
    if s <= 0:
        raise MalformedSignatureError("invalid signature, s must be larger than zero")
    return r, s


def signature_to_low_s(public_key: ec.EllipticCurvePublicKey, signature: bytes) -> bytes:
    r, s = unmarshal_signature(signature)
    return marshal_signature(r, to_low_s(public_key, s))


def _prehashed(digest: bytes) -> ec.ECDSA:
    algorithm = _PREHASH_BY_LENGTH.get(len(digest))
    if algorithm is None:
        raise MalformedInputError(
            f"unsupported digest length {len(digest)}",
            details={"digest_length": len(digest)},
        )
    return ec.ECDSA(Prehashed(algorithm()))


class SigningManager:
    """Hash, sign and verify on behalf of identities and the crypto suite."""

    def hash(self, msg: bytes) -> bytes:
        return hashlib.sha256(msg).digest()

    def get_hash(self) -> Any:
        return hashlib.sha256()

    def sign(
        self,
        digest: bytes,
        private_key: ec.EllipticCurvePrivateKey,
        public_key: ec.EllipticCurvePublicKey,
    ) -> bytes:
        der = private_key.sign(digest, _prehashed(digest))
        r, s = decode_dss_signature(der)
        return marshal_signature(r, to_low_s(public_key, s))

    def verify(
        self,
        digest: bytes,
        signature: bytes,
        public_key: ec.EllipticCurvePublicKey,
    ) -> bool:
        """Return whether ``signature`` is valid for ``digest``.

        Raises MalformedSignatureError for undecodable signatures and
        NonCanonicalSignatureError for high-S ones.
        """
        r, s = unmarshal_signature(signature)
        half = half_order(public_key)
        if s > half:
            raise NonCanonicalSignatureError(
                f"invalid S. Must be smaller than half the order [{s:#x}][{half:#x}]",
                s=s,
                half_order=half,
            )
        try:
            public_key.verify(marshal_signature(r, s), digest, _prehashed(digest))
        except InvalidSignature:
            return False
        return True
