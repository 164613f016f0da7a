"""
Shared fixtures: RSA keys and report signing certificates.

Key generation is slow, so keys are created once per session.
"""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


def generate_rsa_key(bits: int = 2048) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


def build_certificate(
    subject_cn: str,
    public_key,
    issuer_cn: str,
    issuer_key,
    hash_algorithm=None,
) -> x509.Certificate:
    """Build a certificate for ``public_key`` signed by ``issuer_key``."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject_cn)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn)]))
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(issuer_key, hash_algorithm or hashes.SHA256())
    )


@pytest.fixture(scope="session")
def root_key() -> rsa.RSAPrivateKey:
    """Stands in for the IAS Report Signing CA key."""
    return generate_rsa_key(3072)


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    """Stands in for the IAS Report Signing key."""
    return generate_rsa_key()


@pytest.fixture(scope="session")
def rogue_key() -> rsa.RSAPrivateKey:
    """A key nobody trusts."""
    return generate_rsa_key()


@pytest.fixture(scope="session")
def root_cert(root_key) -> x509.Certificate:
    return build_certificate(
        "Test Attestation Report Signing CA", root_key.public_key(),
        "Test Attestation Report Signing CA", root_key,
    )


@pytest.fixture(scope="session")
def leaf_cert(root_key, signing_key) -> x509.Certificate:
    return build_certificate(
        "Test Attestation Report Signing", signing_key.public_key(),
        "Test Attestation Report Signing CA", root_key,
    )


@pytest.fixture(scope="session")
def rogue_leaf_cert(rogue_key, signing_key) -> x509.Certificate:
    """The genuine signing key, certified by the wrong root."""
    return build_certificate(
        "Test Attestation Report Signing", signing_key.public_key(),
        "Test Attestation Report Signing CA", rogue_key,
    )


@pytest.fixture(scope="session")
def ec_leaf_cert(root_key) -> x509.Certificate:
    """A leaf signed by the root whose own key is not RSA."""
    return build_certificate(
        "Test EC Leaf", ec.generate_private_key(ec.SECP256R1()).public_key(),
        "Test Attestation Report Signing CA", root_key,
    )
