"""
Command line verifier for IAS attestation verification reports.

Example:
    ias-attest --report report.json --signature sig.b64 \\
        --certificate signing-chain.pem --root ias-root.pem \\
        --mrenclave <hex> --mrsigner <hex>
"""

import argparse
import logging
import os
import sys

from .attestation import verify_report_with_certificate
from .cert_utils import certificate_to_der, load_certificate, public_key_from_certificate
from .report import parse_report_json
from .types import AttestationError, MEASUREMENT_SIZE
from .utils import b64decode_strict


def _read_file(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def _measurement(value: str) -> bytes:
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a hex string: {value}")
    if len(raw) != MEASUREMENT_SIZE:
        raise argparse.ArgumentTypeError(
            f"must be {MEASUREMENT_SIZE} bytes ({MEASUREMENT_SIZE * 2} hex chars), got {len(raw)} bytes"
        )
    return raw


def _load_signature(value: str) -> bytes:
    """Signature as a base64 literal or a file holding one (X-IASReport-Signature)."""
    text = _read_file(value).strip() if os.path.isfile(value) else value.strip().encode()
    try:
        return b64decode_strict(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"signature: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ias-attest",
        description="Verify an Intel Attestation Service report and print its report data",
    )
    parser.add_argument("--report", required=True,
                        help="Path to the IAS attestation verification report (JSON body)")
    parser.add_argument("--signature", required=True,
                        help="Base64 report signature, or a file containing it")
    parser.add_argument("--certificate", required=True,
                        help="Report signing certificate (PEM chain, URL-encoded PEM, or DER); the first certificate is used")
    parser.add_argument("--root", required=True,
                        help="Root CA certificate whose RSA key signed the report signing certificate")
    parser.add_argument("--mrenclave", required=True, type=_measurement,
                        help="Expected MRENCLAVE (hex)")
    parser.add_argument("--mrsigner", required=True, type=_measurement,
                        help="Expected MRSIGNER (hex)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log each verification step")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        format='%(message)s',
        level=logging.DEBUG if args.verbose else logging.INFO
    )

    try:
        signature = _load_signature(args.signature)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        values = parse_report_json(_read_file(args.report))
        leaf_der = certificate_to_der(load_certificate(_read_file(args.certificate)))
        root_key = public_key_from_certificate(load_certificate(_read_file(args.root)))

        logging.info(f"Verifying report {values.id} ({values.quote_status})")
        payload = verify_report_with_certificate(
            values,
            signature,
            leaf_der,
            root_key.modulus,
            root_key.exponent,
            args.mrenclave,
            args.mrsigner,
        )
    except OSError as e:
        logging.error(f"Error reading input: {e}")
        return 1
    except AttestationError as e:
        stage = e.stage.value if e.stage else "input"
        logging.error(f"Attestation {e.outcome.value} at {stage}: {e}")
        return 1

    logging.info("Attestation verification successful")
    print(payload.hex())
    return 0


if __name__ == "__main__":
    sys.exit(main())
