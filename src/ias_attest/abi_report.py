"""
Framing of the report-field bundle.

A bundle carries the eight fields of an IAS attestation verification
report between the caller and the verifier. Each field is encoded as a
4-byte big-endian length followed by that many bytes, in this order:

    id, timestamp, version, epidPseudonym, advisoryURL, advisoryIDs,
    isvEnclaveQuoteStatus, isvEnclaveQuoteBody

Text fields are UTF-8. ``version`` is ASCII decimal. ``advisoryIDs`` is a
comma-separated list, empty when absent. The quote body is raw binary
(already base64-decoded by the caller).
"""

import struct
from typing import List

from .types import REPORT_FIELD_COUNT, ReportFormatError, ReportValues
from .utils import read_at, read_u32_be

# =============================================================================
# Constants
# =============================================================================

LENGTH_PREFIX_SIZE = 4

FIELD_ID = 0
FIELD_TIMESTAMP = 1
FIELD_VERSION = 2
FIELD_EPID_PSEUDONYM = 3
FIELD_ADVISORY_URL = 4
FIELD_ADVISORY_IDS = 5
FIELD_QUOTE_STATUS = 6
FIELD_QUOTE_BODY = 7

FIELD_NAMES = (
    "id",
    "timestamp",
    "version",
    "epidPseudonym",
    "advisoryURL",
    "advisoryIDs",
    "isvEnclaveQuoteStatus",
    "isvEnclaveQuoteBody",
)

ADVISORY_ID_SEPARATOR = ","


# =============================================================================
# Parsing Functions
# =============================================================================

def _split_fields(data: bytes) -> List[bytes]:
    """
    Split a bundle into its raw field blobs.

    Raises:
        ReportFormatError: If a length prefix or field runs past the buffer,
            or bytes remain after the last field
    """
    fields = []
    offset = 0
    for name in FIELD_NAMES:
        try:
            length = read_u32_be(data, offset)
            offset += LENGTH_PREFIX_SIZE
            fields.append(read_at(data, offset, length))
        except ValueError as e:
            raise ReportFormatError(f"Truncated bundle at field {name}: {e}") from e
        offset += length

    if offset != len(data):
        raise ReportFormatError(
            f"Bundle has {len(data) - offset} trailing bytes after {REPORT_FIELD_COUNT} fields"
        )
    return fields


def _decode_text(raw: bytes, name: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ReportFormatError(f"Field {name} is not valid UTF-8: {e}") from e


def _decode_version(raw: bytes) -> int:
    if not raw or not raw.isdigit():
        raise ReportFormatError(f"Field version must be ASCII decimal, got {raw!r}")
    try:
        return int(raw)
    except ValueError as e:
        # int() refuses digit strings above the interpreter's conversion limit
        raise ReportFormatError(f"Field version is out of range: {e}") from e


def decode_report_bundle(data: bytes) -> ReportValues:
    """
    Decode a framed bundle into a typed report record.

    All fields are decoded and checked in one step; no partially decoded
    record is ever returned.

    Args:
        data: Framed bundle bytes

    Returns:
        Decoded ReportValues

    Raises:
        ReportFormatError: If the bundle is malformed
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ReportFormatError(f"Bundle must be bytes, got {type(data).__name__}")

    fields = _split_fields(bytes(data))

    text = {}
    for idx in (FIELD_ID, FIELD_TIMESTAMP, FIELD_EPID_PSEUDONYM,
                FIELD_ADVISORY_URL, FIELD_ADVISORY_IDS, FIELD_QUOTE_STATUS):
        text[idx] = _decode_text(fields[idx], FIELD_NAMES[idx])

    for idx in (FIELD_ID, FIELD_TIMESTAMP, FIELD_QUOTE_STATUS):
        if not text[idx]:
            raise ReportFormatError(f"Required field {FIELD_NAMES[idx]} is empty")

    advisory_ids = tuple(
        text[FIELD_ADVISORY_IDS].split(ADVISORY_ID_SEPARATOR)
    ) if text[FIELD_ADVISORY_IDS] else ()
    if any(not advisory for advisory in advisory_ids):
        raise ReportFormatError("Field advisoryIDs contains an empty entry")

    return ReportValues(
        id=text[FIELD_ID],
        timestamp=text[FIELD_TIMESTAMP],
        version=_decode_version(fields[FIELD_VERSION]),
        epid_pseudonym=text[FIELD_EPID_PSEUDONYM],
        advisory_url=text[FIELD_ADVISORY_URL],
        advisory_ids=advisory_ids,
        quote_status=text[FIELD_QUOTE_STATUS],
        quote_body=fields[FIELD_QUOTE_BODY],
    )


def encode_report_bundle(values: ReportValues) -> bytes:
    """
    Frame a report record as a bundle. Inverse of decode_report_bundle.

    Raises:
        ReportFormatError: If an advisory ID contains the separator
    """
    if any(ADVISORY_ID_SEPARATOR in advisory for advisory in values.advisory_ids):
        raise ReportFormatError("Advisory IDs must not contain a comma")

    blobs = [
        values.id.encode("utf-8"),
        values.timestamp.encode("utf-8"),
        str(values.version).encode("ascii"),
        values.epid_pseudonym.encode("utf-8"),
        values.advisory_url.encode("utf-8"),
        ADVISORY_ID_SEPARATOR.join(values.advisory_ids).encode("utf-8"),
        values.quote_status.encode("utf-8"),
        bytes(values.quote_body),
    ]

    out = b''
    for blob in blobs:
        out += struct.pack(">I", len(blob))
        out += blob
    return out
