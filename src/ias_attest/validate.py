"""
Quote body validation.

Checks the quote status and the enclave identity embedded in the IAS quote
body, and extracts the 64-byte report data the enclave committed to.

Usage:
    from ias_attest.validate import validate_quote_body

    payload = validate_quote_body(values, ExpectedIdentity(mrenclave, mrsigner))
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Tuple

from .types import (
    ALLOWED_STATUS_DIGESTS,
    MEASUREMENT_SIZE,
    MR_ENCLAVE_OFFSET,
    MR_SIGNER_OFFSET,
    QUOTE_BODY_SIZE,
    REPORT_DATA_OFFSET,
    REPORT_DATA_SIZE,
    ExpectedIdentity,
    MrEnclaveMismatchError,
    MrSignerMismatchError,
    QuoteBodySizeError,
    QuoteStatusError,
    ReportValues,
)
from .utils import read_at

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteLayout:
    """
    Fixed layout of the quote body and the accepted statuses.

    Defaults describe the IAS v4 quote body; all offsets are relative to
    the start of the quote body.
    """
    quote_body_size: int = QUOTE_BODY_SIZE
    mr_enclave_offset: int = MR_ENCLAVE_OFFSET
    mr_signer_offset: int = MR_SIGNER_OFFSET
    measurement_size: int = MEASUREMENT_SIZE
    payload_offset: int = REPORT_DATA_OFFSET
    payload_size: int = REPORT_DATA_SIZE
    # SHA-256 digests of the allowed isvEnclaveQuoteStatus values
    allowed_status_digests: Tuple[bytes, ...] = ALLOWED_STATUS_DIGESTS

    def __post_init__(self):
        for name, offset, size in (
            ("mr_enclave", self.mr_enclave_offset, self.measurement_size),
            ("mr_signer", self.mr_signer_offset, self.measurement_size),
            ("payload", self.payload_offset, self.payload_size),
        ):
            if offset < 0 or size <= 0 or offset + size > self.quote_body_size:
                raise ValueError(
                    f"QuoteLayout {name} region [{offset}, {offset + size}) "
                    f"is outside the {self.quote_body_size}-byte quote body"
                )


DEFAULT_LAYOUT = QuoteLayout()


def validate_quote_status(status: str, layout: QuoteLayout = DEFAULT_LAYOUT) -> None:
    """
    Require the quote status to be allow-listed.

    Raises:
        QuoteStatusError: If the status is not accepted
    """
    digest = hashlib.sha256(status.encode("utf-8")).digest()
    if digest not in layout.allowed_status_digests:
        raise QuoteStatusError(f"Quote status {status!r} is not accepted")


def validate_quote_body_size(quote_body: bytes, layout: QuoteLayout = DEFAULT_LAYOUT) -> None:
    """
    Raises:
        QuoteBodySizeError: If the quote body is not exactly the layout size
    """
    if len(quote_body) != layout.quote_body_size:
        raise QuoteBodySizeError(
            f"Quote body is {len(quote_body)} bytes, expected {layout.quote_body_size}"
        )


def validate_quote_body(
    values: ReportValues,
    expected: ExpectedIdentity,
    layout: QuoteLayout = DEFAULT_LAYOUT,
) -> bytes:
    """
    Validate a report's quote and return the embedded payload.

    Validation steps:
    1. Quote status must be allow-listed
    2. Quote body must be exactly layout.quote_body_size bytes
    3. MRENCLAVE and MRSIGNER must equal the expected values byte for byte
    4. The payload region is returned verbatim

    Args:
        values: Decoded report fields
        expected: Allow-listed enclave identity
        layout: Quote body layout

    Returns:
        The payload bytes (report data for the default layout)

    Raises:
        QuoteStatusError: If the status is not accepted
        QuoteBodySizeError: If the quote body has the wrong size
        MrEnclaveMismatchError: If MRENCLAVE differs
        MrSignerMismatchError: If MRSIGNER differs
    """
    validate_quote_status(values.quote_status, layout)

    quote_body = values.quote_body
    validate_quote_body_size(quote_body, layout)

    try:
        mr_enclave = read_at(quote_body, layout.mr_enclave_offset, layout.measurement_size)
        mr_signer = read_at(quote_body, layout.mr_signer_offset, layout.measurement_size)
        payload = read_at(quote_body, layout.payload_offset, layout.payload_size)
    except ValueError as e:
        raise QuoteBodySizeError(str(e)) from e

    # Both values are public attestation data; no timing side-channel concern.
    if mr_enclave != expected.mrenclave:
        raise MrEnclaveMismatchError(
            f"MRENCLAVE mismatch: got {mr_enclave.hex()}, expected {expected.mrenclave.hex()}"
        )
    if mr_signer != expected.mrsigner:
        raise MrSignerMismatchError(
            f"MRSIGNER mismatch: got {mr_signer.hex()}, expected {expected.mrsigner.hex()}"
        )

    logger.debug("Quote body validated for MRENCLAVE %s", mr_enclave.hex())
    return bytes(payload)
