"""
IAS attestation report verification flow.

Two entry points:

- verify_report: the caller already trusts the report-signing key
- verify_report_with_certificate: the report-signing key is taken from a
  leaf certificate that must be signed by a caller-supplied root key

Each call runs a linear pipeline

    AWAITING_CERT_VERIFICATION -> AWAITING_REPORT_VERIFICATION
        -> AWAITING_CONTENT_VALIDATION -> ACCEPTED

and stops in REJECTED or MALFORMED at the first failing step. Errors
carry the stage they were raised in.

Usage:
    from ias_attest import verify_report_with_certificate

    payload = verify_report_with_certificate(
        bundle, signature, leaf_der, root_modulus, root_exponent,
        expected_mrenclave, expected_mrsigner,
    )
"""

import hashlib
import logging
from contextlib import contextmanager
from typing import Iterator, Union

from .abi_report import decode_report_bundle
from .cert_utils import verify_leaf_certificate
from .report import build_report_message
from .types import (
    AttestationError,
    ExpectedIdentity,
    ReportFormatError,
    ReportSignatureError,
    ReportValues,
    RsaPublicKey,
    Stage,
    TERMINAL_STAGES,
)
from .validate import DEFAULT_LAYOUT, QuoteLayout, validate_quote_body
from .verify import verify_rsa_signature

logger = logging.getLogger(__name__)

ReportFields = Union[bytes, bytearray, ReportValues]


class VerificationPipeline:
    """Tracks which checks a single verification call has passed."""

    def __init__(self, start: Stage):
        self.stage = start

    @property
    def finished(self) -> bool:
        return self.stage in TERMINAL_STAGES

    @contextmanager
    def step(self, stage: Stage, next_stage: Stage) -> Iterator[None]:
        """
        Run one pipeline step.

        The step may only run from ``stage``; on success the pipeline moves
        to ``next_stage``, on an AttestationError to the error's outcome, and
        on any other exception to MALFORMED.
        """
        if self.stage != stage:
            raise RuntimeError(
                f"Verification step {stage.value} cannot run in state {self.stage.value}"
            )
        try:
            yield
        except AttestationError as e:
            if e.stage is None:
                e.stage = stage
            self.stage = e.outcome
            logger.debug("Verification stopped at %s: %s (%s)", stage.value, self.stage.value, e)
            raise
        except Exception:
            self.stage = Stage.MALFORMED
            logger.debug("Verification stopped at %s on an unexpected error", stage.value)
            raise
        logger.debug("Verification %s -> %s", stage.value, next_stage.value)
        self.stage = next_stage


def _decode_report_fields(report_fields: ReportFields) -> ReportValues:
    if isinstance(report_fields, ReportValues):
        return report_fields
    if isinstance(report_fields, (bytes, bytearray)):
        return decode_report_bundle(report_fields)
    raise ReportFormatError(
        f"Report fields must be a bundle or ReportValues, got {type(report_fields).__name__}"
    )


def _run_report_pipeline(
    pipeline: VerificationPipeline,
    report_fields: ReportFields,
    signature: bytes,
    signer_key: RsaPublicKey,
    expected_mrenclave: bytes,
    expected_mrsigner: bytes,
    layout: QuoteLayout,
) -> bytes:
    with pipeline.step(Stage.AWAITING_REPORT_VERIFICATION, Stage.AWAITING_CONTENT_VALIDATION):
        values = _decode_report_fields(report_fields)
        expected = ExpectedIdentity(
            mrenclave=bytes(expected_mrenclave),
            mrsigner=bytes(expected_mrsigner),
        )
        message = build_report_message(values)
        logger.debug("Report message sha256: %s", hashlib.sha256(message).hexdigest())
        if not verify_rsa_signature(message, signature, signer_key):
            raise ReportSignatureError(
                "Report signature verification failed: signature does not match "
                "the reconstructed report (forged signature or non-canonical fields)"
            )

    with pipeline.step(Stage.AWAITING_CONTENT_VALIDATION, Stage.ACCEPTED):
        payload = validate_quote_body(values, expected, layout)

    return payload


def verify_report(
    report_fields: ReportFields,
    signature: bytes,
    signer_modulus: bytes,
    signer_exponent: bytes,
    expected_mrenclave: bytes,
    expected_mrsigner: bytes,
    layout: QuoteLayout = DEFAULT_LAYOUT,
) -> bytes:
    """
    Verify an IAS report signed by a directly trusted key.

    Steps:
    1. Decode the report fields and rebuild the canonical report message
    2. Verify the RSA signature over it with the given key
    3. Validate status, quote size and enclave identity
    4. Return the quote payload

    Args:
        report_fields: Framed report bundle, or decoded ReportValues
        signature: Raw report signature
        signer_modulus: Signing key modulus (big-endian)
        signer_exponent: Signing key exponent (big-endian)
        expected_mrenclave: Allow-listed MRENCLAVE (32 bytes)
        expected_mrsigner: Allow-listed MRSIGNER (32 bytes)
        layout: Quote body layout

    Returns:
        Payload bytes embedded in the quote

    Raises:
        MalformedInputError: If an input violates its structural contract
        VerificationRejectedError: If a signature or policy check fails
    """
    pipeline = VerificationPipeline(Stage.AWAITING_REPORT_VERIFICATION)
    return _run_report_pipeline(
        pipeline,
        report_fields,
        signature,
        RsaPublicKey(modulus=bytes(signer_modulus), exponent=bytes(signer_exponent)),
        expected_mrenclave,
        expected_mrsigner,
        layout,
    )


def verify_report_with_certificate(
    report_fields: ReportFields,
    signature: bytes,
    leaf_certificate: bytes,
    root_modulus: bytes,
    root_exponent: bytes,
    expected_mrenclave: bytes,
    expected_mrsigner: bytes,
    layout: QuoteLayout = DEFAULT_LAYOUT,
) -> bytes:
    """
    Verify an IAS report whose signing key comes from a leaf certificate.

    The leaf certificate must be signed by the root key; its own key must
    sign the report. The report is not examined if the certificate fails.

    Args:
        report_fields: Framed report bundle, or decoded ReportValues
        signature: Raw report signature
        leaf_certificate: DER-encoded report signing certificate
        root_modulus: Root key modulus (big-endian)
        root_exponent: Root key exponent (big-endian)
        expected_mrenclave: Allow-listed MRENCLAVE (32 bytes)
        expected_mrsigner: Allow-listed MRSIGNER (32 bytes)
        layout: Quote body layout

    Returns:
        Payload bytes embedded in the quote

    Raises:
        MalformedInputError: If an input violates its structural contract
        VerificationRejectedError: If a signature or policy check fails
    """
    pipeline = VerificationPipeline(Stage.AWAITING_CERT_VERIFICATION)

    with pipeline.step(Stage.AWAITING_CERT_VERIFICATION, Stage.AWAITING_REPORT_VERIFICATION):
        root_key = RsaPublicKey(modulus=bytes(root_modulus), exponent=bytes(root_exponent))
        leaf_key = verify_leaf_certificate(leaf_certificate, root_key)

    return _run_report_pipeline(
        pipeline,
        report_fields,
        signature,
        leaf_key,
        expected_mrenclave,
        expected_mrsigner,
        layout,
    )
