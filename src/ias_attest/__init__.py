from .attestation import (
    verify_report,
    verify_report_with_certificate,
    VerificationPipeline,
)
from .abi_report import decode_report_bundle, encode_report_bundle
from .cert_utils import verify_leaf_certificate
from .report import build_report_message, parse_report_json
from .validate import validate_quote_body, QuoteLayout, DEFAULT_LAYOUT
from .verify import verify_rsa_signature
from .types import (
    ReportValues,
    ExpectedIdentity,
    RsaPublicKey,
    Stage,
    AttestationError,
    MalformedInputError,
    ReportFormatError,
    QuoteBodySizeError,
    CertificateFormatError,
    VerificationRejectedError,
    SignatureError,
    ReportSignatureError,
    CertificateSignatureError,
    QuoteValidationError,
    QuoteStatusError,
    MrEnclaveMismatchError,
    MrSignerMismatchError,
)

__all__ = [
    'verify_report',
    'verify_report_with_certificate',
    'VerificationPipeline',
    'decode_report_bundle',
    'encode_report_bundle',
    'verify_leaf_certificate',
    'build_report_message',
    'parse_report_json',
    'validate_quote_body',
    'QuoteLayout',
    'DEFAULT_LAYOUT',
    'verify_rsa_signature',
    'ReportValues',
    'ExpectedIdentity',
    'RsaPublicKey',
    'Stage',
    'AttestationError',
    'MalformedInputError',
    'ReportFormatError',
    'QuoteBodySizeError',
    'CertificateFormatError',
    'VerificationRejectedError',
    'SignatureError',
    'ReportSignatureError',
    'CertificateSignatureError',
    'QuoteValidationError',
    'QuoteStatusError',
    'MrEnclaveMismatchError',
    'MrSignerMismatchError',
]
