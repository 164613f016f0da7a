"""
Certificate utilities for IAS report verification.

This module verifies the Report Signing leaf certificate against a
caller-supplied root key and extracts the leaf's RSA key. It models
exactly two trust hops (root key signs leaf, leaf key signs report):
there is no path building, expiry or revocation checking.
"""

import logging
from typing import List, Union
from urllib.parse import unquote

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .types import CertificateFormatError, CertificateSignatureError, RsaPublicKey
from .verify import verify_rsa_signature

logger = logging.getLogger(__name__)

PEM_BEGIN_MARKER = b'-----BEGIN'
PEM_END_MARKER = b'-----END CERTIFICATE-----'


def parse_pem_chain(pem_data: Union[bytes, str]) -> List[x509.Certificate]:
    """
    Parse concatenated PEM certificates.

    Handles:
    - Concatenated PEM certificates
    - URL-encoded chains, as sent in the X-IASReport-Signing-Certificate header
    - Leading/trailing whitespace and null bytes

    Args:
        pem_data: PEM-encoded certificate chain

    Returns:
        List of parsed certificates in order

    Raises:
        CertificateFormatError: If parsing fails or no certificate is found
    """
    if isinstance(pem_data, bytes):
        try:
            pem_data = pem_data.decode("ascii")
        except UnicodeDecodeError as e:
            raise CertificateFormatError(f"PEM chain is not ASCII: {e}") from e
    if "%" in pem_data:
        pem_data = unquote(pem_data)

    certs = []
    remaining = pem_data.encode("ascii", errors="replace")

    while remaining:
        remaining = remaining.lstrip(b'\x00\n\r\t ')
        if not remaining:
            break

        end_pos = remaining.find(PEM_END_MARKER)
        if end_pos == -1:
            raise CertificateFormatError("Unterminated PEM certificate")
        block = remaining[:end_pos + len(PEM_END_MARKER)]

        try:
            certs.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            raise CertificateFormatError(f"Failed to parse PEM certificate: {e}") from e

        remaining = remaining[end_pos + len(PEM_END_MARKER):]

    if not certs:
        raise CertificateFormatError("No certificate found in PEM data")
    return certs


def load_certificate(data: Union[bytes, str]) -> x509.Certificate:
    """
    Load the first certificate from PEM (plain or URL-encoded) or DER data.

    Raises:
        CertificateFormatError: If no certificate can be parsed
    """
    if isinstance(data, str) or PEM_BEGIN_MARKER in data:
        return parse_pem_chain(data)[0]
    try:
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise CertificateFormatError(f"Failed to parse DER certificate: {e}") from e


def certificate_to_der(cert: x509.Certificate) -> bytes:
    """Serialize a certificate to DER."""
    return cert.public_bytes(serialization.Encoding.DER)


def public_key_from_certificate(cert: x509.Certificate) -> RsaPublicKey:
    """
    Extract the RSA public key embedded in a certificate.

    Raises:
        CertificateFormatError: If the certificate does not carry an RSA key
    """
    try:
        key = cert.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CertificateFormatError(f"Unreadable certificate public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise CertificateFormatError(
            f"Certificate public key is {type(key).__name__}, expected RSA"
        )
    return RsaPublicKey.from_public_key(key)


def verify_leaf_certificate(leaf_der: bytes, root_key: RsaPublicKey) -> RsaPublicKey:
    """
    Verify a leaf certificate's signature with a root key and return the leaf key.

    Verification steps:
    1. Parse the DER certificate
    2. Check the certificate is signed with RSA PKCS#1 v1.5
    3. Verify the signature over the TBSCertificate with the root key
    4. Extract the leaf's RSA public key

    Args:
        leaf_der: DER-encoded leaf certificate
        root_key: Public key expected to have signed the leaf

    Returns:
        The leaf certificate's RSA public key

    Raises:
        CertificateFormatError: If the certificate cannot be parsed or does
            not use RSA for its signature or its own key
        CertificateSignatureError: If the root key did not sign the leaf
    """
    try:
        cert = x509.load_der_x509_certificate(bytes(leaf_der))
    except ValueError as e:
        raise CertificateFormatError(f"Failed to parse leaf certificate: {e}") from e

    try:
        signature_padding = cert.signature_algorithm_parameters
        hash_algorithm = cert.signature_hash_algorithm
    except UnsupportedAlgorithm as e:
        raise CertificateFormatError(f"Unsupported leaf signature algorithm: {e}") from e
    if not isinstance(signature_padding, padding.PKCS1v15) or hash_algorithm is None:
        raise CertificateFormatError(
            f"Leaf certificate is not signed with RSA PKCS#1 v1.5 "
            f"({cert.signature_algorithm_oid.dotted_string})"
        )

    if not verify_rsa_signature(cert.tbs_certificate_bytes, cert.signature, root_key, hash_algorithm):
        raise CertificateSignatureError(
            "Leaf certificate signature verification failed using root key"
        )

    leaf_key = public_key_from_certificate(cert)
    logger.debug("Leaf certificate verified: %s, %s", cert.subject.rfc4514_string(), leaf_key)
    return leaf_key
