"""
Shared types, errors, and protocol constants for IAS report verification.

This module is the canonical source for types used across the builder,
validator and orchestrator. It has no intra-package dependencies, so any
module can import from it without risk of circular imports.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from cryptography.hazmat.primitives.asymmetric import rsa


# =============================================================================
# Protocol-level constants (IAS attestation verification report, API v4)
# =============================================================================

QUOTE_BODY_SIZE = 432        # sgx_quote_t without signature_len/signature
MR_ENCLAVE_OFFSET = 112      # 48 (quote header) + 64 (report body)
MR_SIGNER_OFFSET = 176
MEASUREMENT_SIZE = 32
REPORT_DATA_OFFSET = 368
REPORT_DATA_SIZE = 64

STATUS_OK = "OK"
STATUS_SW_HARDENING_NEEDED = "SW_HARDENING_NEEDED"

# Statuses are compared by digest, never by prefix
ALLOWED_STATUS_DIGESTS = (
    hashlib.sha256(STATUS_OK.encode()).digest(),
    hashlib.sha256(STATUS_SW_HARDENING_NEEDED.encode()).digest(),
)

REPORT_FIELD_COUNT = 8


# =============================================================================
# Pipeline states
# =============================================================================

class Stage(str, Enum):
    """Position of a verification call in its pipeline"""
    AWAITING_CERT_VERIFICATION = "awaiting-cert-verification"
    AWAITING_REPORT_VERIFICATION = "awaiting-report-verification"
    AWAITING_CONTENT_VALIDATION = "awaiting-content-validation"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MALFORMED = "malformed"


TERMINAL_STAGES = (Stage.ACCEPTED, Stage.REJECTED, Stage.MALFORMED)


# =============================================================================
# Errors
# =============================================================================

class AttestationError(Exception):
    """Base class for attestation errors.

    ``stage`` records the pipeline stage that was active when the error was
    raised; it is filled in by the orchestrator and stays None when a
    component is called directly.
    """
    outcome: Stage = Stage.REJECTED

    def __init__(self, message: str = "", stage: Optional[Stage] = None):
        super().__init__(message)
        self.stage = stage


class MalformedInputError(AttestationError):
    """Raised when input violates the structural contract"""
    outcome = Stage.MALFORMED

class ReportFormatError(MalformedInputError):
    """Raised when the report fields cannot be decoded"""
    pass

class QuoteBodySizeError(MalformedInputError):
    """Raised when the quote body is not exactly QUOTE_BODY_SIZE bytes"""
    pass

class CertificateFormatError(MalformedInputError):
    """Raised when a certificate cannot be parsed"""
    pass


class VerificationRejectedError(AttestationError):
    """Raised when well-formed evidence fails a cryptographic or policy check"""
    outcome = Stage.REJECTED

class SignatureError(VerificationRejectedError):
    """Raised when a signature does not verify"""
    pass

class ReportSignatureError(SignatureError):
    """Raised when the report signature does not verify.

    IAS signs the exact report bytes, so a canonicalization mistake is
    indistinguishable from a forged signature here.
    """
    pass

class CertificateSignatureError(SignatureError):
    """Raised when the leaf certificate was not signed by the root key"""
    pass

class QuoteValidationError(VerificationRejectedError):
    """Raised when the quote does not describe a trusted enclave"""
    pass

class QuoteStatusError(QuoteValidationError):
    """Raised when the quote status is not allow-listed"""
    pass

class MrEnclaveMismatchError(QuoteValidationError):
    """Raised when MRENCLAVE differs from the expected value"""
    pass

class MrSignerMismatchError(QuoteValidationError):
    """Raised when MRSIGNER differs from the expected value"""
    pass


# =============================================================================
# Data types
# =============================================================================

@dataclass(frozen=True)
class ReportValues:
    """Fields of an IAS attestation verification report.

    Optional text fields are absent when empty. ``quote_body`` holds the
    raw quote bytes, not the base64 text IAS transports.
    """
    id: str
    timestamp: str
    version: int
    quote_status: str
    quote_body: bytes
    epid_pseudonym: str = ""
    advisory_url: str = ""
    advisory_ids: Tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return (
            f"ReportValues(id={self.id}, timestamp={self.timestamp}, "
            f"version={self.version}, status={self.quote_status}, "
            f"quote_body={len(self.quote_body)} bytes)"
        )


@dataclass(frozen=True)
class ExpectedIdentity:
    """Allow-listed enclave measurement and signer (32 bytes each)"""
    mrenclave: bytes
    mrsigner: bytes

    def __post_init__(self):
        for name in ("mrenclave", "mrsigner"):
            value = getattr(self, name)
            if len(value) != MEASUREMENT_SIZE:
                raise MalformedInputError(
                    f"Expected {name} is {len(value)} bytes, expected {MEASUREMENT_SIZE}"
                )


@dataclass(frozen=True)
class RsaPublicKey:
    """RSA public key as big-endian modulus and exponent bytes"""
    modulus: bytes
    exponent: bytes

    @classmethod
    def from_public_key(cls, key: rsa.RSAPublicKey) -> 'RsaPublicKey':
        numbers = key.public_numbers()
        return cls(
            modulus=_int_to_bytes(numbers.n),
            exponent=_int_to_bytes(numbers.e),
        )

    def to_public_key(self) -> rsa.RSAPublicKey:
        """
        Build a cryptography RSA key.

        Raises:
            ValueError: If the numbers do not form a valid RSA public key
        """
        n = int.from_bytes(self.modulus, byteorder='big')
        e = int.from_bytes(self.exponent, byteorder='big')
        return rsa.RSAPublicNumbers(e, n).public_key()

    def __str__(self) -> str:
        return f"RsaPublicKey(bits={len(self.modulus) * 8}, exponent=0x{self.exponent.hex()})"


def _int_to_bytes(value: int) -> bytes:
    return value.to_bytes((value.bit_length() + 7) // 8 or 1, byteorder='big')
