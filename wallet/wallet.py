import hashlib
import logging
from typing import Sequence, Tuple

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from config.config import ADDRESS_PREFIX, SIGNATURE_CURVE

logger = logging.getLogger(__name__)

_CHECKSUM_LEN = 4
_CURVES = {
    "secp256k1": ec.SECP256K1,
    "secp256r1": ec.SECP256R1,
}


def _curve() -> ec.EllipticCurve:
    return _CURVES[SIGNATURE_CURVE]()


def derive_address(pub: bytes) -> str:
    h = hashlib.sha3_256(pub).digest()
    versioned = bytes([0x00]) + h[:20]
    chk = hashlib.sha3_256(versioned).digest()[:_CHECKSUM_LEN]
    return ADDRESS_PREFIX + base58.b58encode(versioned + chk).decode()


def public_key_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Compressed SEC1 point; this is the owner key stored in outputs."""
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )


def generate_keypair() -> Tuple[ec.EllipticCurvePrivateKey, bytes]:
    private_key = ec.generate_private_key(_curve())
    return private_key, public_key_bytes(private_key)


def sign_message(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """Sign raw bytes; return a DER-encoded ECDSA signature."""
    return private_key.sign(message, ec.ECDSA(hashes.SHA256()))


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Signature oracle: True iff `signature` over `message` verifies under `public_key`."""
    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(_curve(), public_key)
        key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False
    except (ValueError, TypeError) as e:
        # undecodable key or signature bytes
        logger.debug(f"Failed to verify: {e}")
        return False


def sign_transaction(tx, private_keys: Sequence[ec.EllipticCurvePrivateKey]):
    """Return a copy of `tx` with input i signed by private_keys[i]."""
    if len(private_keys) != len(tx.inputs):
        raise ValueError(f"Need {len(tx.inputs)} keys, got {len(private_keys)}")
    signed = tx
    for index, key in enumerate(private_keys):
        signed = signed.with_signature(index, sign_message(key, tx.raw_data_to_sign(index)))
    return signed
