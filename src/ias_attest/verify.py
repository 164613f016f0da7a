"""
RSA signature verification primitive.

IAS signs reports with RSASSA-PKCS1-v1_5 over SHA-256 using the key in its
Report Signing certificate.
"""

import logging
from typing import Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from .types import RsaPublicKey

logger = logging.getLogger(__name__)


def verify_rsa_signature(
    message: bytes,
    signature: bytes,
    key: RsaPublicKey,
    hash_algorithm: Optional[hashes.HashAlgorithm] = None,
) -> bool:
    """
    Verify an RSA PKCS#1 v1.5 signature.

    Key material that does not form a valid RSA public key (modulus below 3,
    even or too small exponent) is treated as a failed verification.

    Args:
        message: Signed bytes
        signature: Raw signature bytes
        key: Signer's public key
        hash_algorithm: Digest used by the signer, SHA-256 if omitted

    Returns:
        True if the signature verifies, False otherwise
    """
    if hash_algorithm is None:
        hash_algorithm = hashes.SHA256()

    try:
        public_key = key.to_public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        logger.debug("Rejecting unusable RSA key: %s", e)
        return False

    try:
        public_key.verify(bytes(signature), bytes(message), padding.PKCS1v15(), hash_algorithm)
    except InvalidSignature:
        return False
    return True
