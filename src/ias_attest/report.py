"""
Canonical report reconstruction.

IAS signs the exact bytes of its JSON attestation verification report.
The verifier receives the fields individually (with the quote body
already base64-decoded), so the signed message has to be rebuilt byte
for byte before the signature can be checked:

    {"id":"...","timestamp":"...","version":4,"epidPseudonym":"...",
     "advisoryURL":"...","advisoryIDs":["..."],
     "isvEnclaveQuoteStatus":"...","isvEnclaveQuoteBody":"..."}

with no whitespace, and with epidPseudonym, advisoryURL and advisoryIDs
present only when non-empty.
"""

import json
import logging
from typing import Any, Dict

from .types import ReportFormatError, ReportValues
from .utils import b64decode_strict, b64encode_str

logger = logging.getLogger(__name__)

KEY_ID = "id"
KEY_TIMESTAMP = "timestamp"
KEY_VERSION = "version"
KEY_EPID_PSEUDONYM = "epidPseudonym"
KEY_ADVISORY_URL = "advisoryURL"
KEY_ADVISORY_IDS = "advisoryIDs"
KEY_QUOTE_STATUS = "isvEnclaveQuoteStatus"
KEY_QUOTE_BODY = "isvEnclaveQuoteBody"

REPORT_KEYS = (
    KEY_ID,
    KEY_TIMESTAMP,
    KEY_VERSION,
    KEY_EPID_PSEUDONYM,
    KEY_ADVISORY_URL,
    KEY_ADVISORY_IDS,
    KEY_QUOTE_STATUS,
    KEY_QUOTE_BODY,
)

_SEPARATORS = (",", ":")


def build_report_message(values: ReportValues) -> bytes:
    """
    Rebuild the exact report bytes IAS signed.

    Args:
        values: Decoded report fields

    Returns:
        UTF-8 encoded compact JSON in IAS field order

    Raises:
        ReportFormatError: If a text field holds a lone surrogate
    """
    # dicts keep insertion order, which fixes the key order of the output
    doc: Dict[str, Any] = {
        KEY_ID: values.id,
        KEY_TIMESTAMP: values.timestamp,
        KEY_VERSION: values.version,
    }
    if values.epid_pseudonym:
        doc[KEY_EPID_PSEUDONYM] = values.epid_pseudonym
    if values.advisory_url:
        doc[KEY_ADVISORY_URL] = values.advisory_url
    if values.advisory_ids:
        doc[KEY_ADVISORY_IDS] = list(values.advisory_ids)
    doc[KEY_QUOTE_STATUS] = values.quote_status
    doc[KEY_QUOTE_BODY] = b64encode_str(values.quote_body)

    try:
        message = json.dumps(doc, separators=_SEPARATORS, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as e:
        raise ReportFormatError(f"Report field is not encodable as UTF-8: {e}") from e
    logger.debug("Reconstructed report message: %d bytes", len(message))
    return message


def _check_encodable(value: str, key: str) -> str:
    # JSON \u escapes can produce lone surrogates, which UTF-8 cannot carry
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ReportFormatError(f"Report field {key} is not valid Unicode: {e}") from e
    return value


def _require(doc: Dict[str, Any], key: str, kind: type) -> Any:
    if key not in doc:
        raise ReportFormatError(f"Report is missing required field {key}")
    value = doc[key]
    # bool is an int subclass; a JSON true is not a version number
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ReportFormatError(
            f"Report field {key} must be {kind.__name__}, got {type(value).__name__}"
        )
    if isinstance(value, str):
        _check_encodable(value, key)
    return value


def _optional_str(doc: Dict[str, Any], key: str) -> str:
    if key not in doc:
        return ""
    value = doc[key]
    if not isinstance(value, str) or not value:
        raise ReportFormatError(f"Report field {key} must be a non-empty string when present")
    return _check_encodable(value, key)


def parse_report_json(data) -> ReportValues:
    """
    Parse an IAS attestation verification report body.

    Only the fields the canonical builder can reproduce are accepted; a
    report carrying anything else could never match its signature.

    Args:
        data: Report JSON as bytes or str

    Returns:
        Decoded ReportValues with the quote body base64-decoded

    Raises:
        ReportFormatError: If the report is not valid JSON or a field is
            missing, mistyped or unknown
    """
    try:
        doc = json.loads(data)
    except (ValueError, TypeError) as e:
        raise ReportFormatError(f"Report is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise ReportFormatError("Report must be a JSON object")

    unknown = [key for key in doc if key not in REPORT_KEYS]
    if unknown:
        raise ReportFormatError(f"Report has unsupported fields: {', '.join(sorted(unknown))}")

    advisory_ids = doc.get(KEY_ADVISORY_IDS, [])
    if not isinstance(advisory_ids, list) or not all(
        isinstance(advisory, str) and advisory for advisory in advisory_ids
    ):
        raise ReportFormatError(f"Report field {KEY_ADVISORY_IDS} must be a list of strings")
    if KEY_ADVISORY_IDS in doc and not advisory_ids:
        raise ReportFormatError(f"Report field {KEY_ADVISORY_IDS} must not be empty when present")
    for advisory in advisory_ids:
        _check_encodable(advisory, KEY_ADVISORY_IDS)

    try:
        quote_body = b64decode_strict(_require(doc, KEY_QUOTE_BODY, str))
    except ValueError as e:
        raise ReportFormatError(f"Report field {KEY_QUOTE_BODY}: {e}") from e

    return ReportValues(
        id=_require(doc, KEY_ID, str),
        timestamp=_require(doc, KEY_TIMESTAMP, str),
        version=_require(doc, KEY_VERSION, int),
        epid_pseudonym=_optional_str(doc, KEY_EPID_PSEUDONYM),
        advisory_url=_optional_str(doc, KEY_ADVISORY_URL),
        advisory_ids=tuple(advisory_ids),
        quote_status=_require(doc, KEY_QUOTE_STATUS, str),
        quote_body=quote_body,
    )
