"""Parsing certificate files in PEM, DER and PKCS#12 form.

``parse_certificate_file`` picks the path from the file extension:

* ``.pfx`` / ``.p12``: container structure is checked, contents are not
  decrypted and the outcome asks for a password.
* ``.der``: the whole buffer must be exactly one certificate.
* anything else: PEM first, raw DER if no PEM block was usable.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Optional, Union

from asn1crypto import pkcs12

from cert_errors import DecodeError, EncodingError
from cert_records import (
    ParseOutcome,
    build_certificate_record,
    build_private_key_record,
)
from pem_lib import split_pem_blocks

__all__ = [
    "PKCS12_EXTENSIONS",
    "DER_EXTENSIONS",
    "parse_pem",
    "parse_der",
    "parse_pkcs12",
    "parse_certificate_file",
]

logger = logging.getLogger(__name__)

PKCS12_EXTENSIONS = (".pfx", ".p12")
DER_EXTENSIONS = (".der",)

PKCS12_UNSUPPORTED = "PKCS#12 parsing is not fully supported yet; decryption is not implemented"


def _as_text(data: Union[bytes, str]) -> str:
    if not isinstance(data, str):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError("Invalid UTF-8 in PEM data") from e
    # Editors on Windows often save PEM files with a byte order mark.
    return data[1:] if data.startswith("\ufeff") else data


def parse_pem(data: Union[bytes, str]) -> ParseOutcome:
    """Parse every certificate and private key block in PEM text.

    Certificates that fail to decode and blocks with unknown tags are logged
    and dropped.

    Raises
    ------
    EncodingError
        If ``data`` is bytes that are not UTF-8 text.
    """
    certificates = []
    private_keys = []
    for block in split_pem_blocks(_as_text(data)):
        if block.tag == "CERTIFICATE":
            try:
                certificates.append(build_certificate_record(block.der))
            except DecodeError as e:
                logger.warning("Failed to parse certificate: %s", e)
        elif "PRIVATE KEY" in block.tag:
            private_keys.append(build_private_key_record(block.der, block.tag, block.headers))
        else:
            logger.warning("Skipping unknown PEM block: %s", block.tag)

    return ParseOutcome(certificates=tuple(certificates), private_keys=tuple(private_keys))


def parse_der(data: bytes) -> ParseOutcome:
    """Parse a buffer holding exactly one DER certificate.

    Raises
    ------
    DecodeError
        If the buffer is not a certificate.
    """
    return ParseOutcome(certificates=(build_certificate_record(data),))


def parse_pkcs12(data: bytes, password: Optional[str] = None) -> ParseOutcome:
    """Check that ``data`` looks like a PKCS#12 container.

    Decryption is not implemented: a well-formed container yields an empty
    outcome with ``needs_password`` set and an explanatory error. The
    password is accepted for interface compatibility and not used.
    """
    try:
        pfx = pkcs12.Pfx.load(bytes(data), strict=True)
        version = pfx["version"].native
        content_type = pfx["auth_safe"]["content_type"].native
    except (ValueError, TypeError) as e:
        logger.warning("Failed to parse PKCS#12 file: %s", e)
        return ParseOutcome(error=f"Failed to parse PKCS#12 file: {e}")

    logger.debug("PKCS#12 container version=%s auth_safe=%s", version, content_type)
    return ParseOutcome(needs_password=True, error=PKCS12_UNSUPPORTED)


def _parse_pem_or_der(data: bytes) -> ParseOutcome:
    try:
        outcome = parse_pem(data)
    except EncodingError as e:
        logger.debug("Not PEM text (%s), trying DER", e)
    else:
        if not outcome.is_empty:
            return outcome
        logger.debug("No PEM blocks found, trying DER")
    return parse_der(data)


def _with_source(outcome: ParseOutcome, filename: str) -> ParseOutcome:
    return dataclasses.replace(
        outcome,
        certificates=tuple(dataclasses.replace(c, source=filename) for c in outcome.certificates),
        private_keys=tuple(dataclasses.replace(k, source=filename) for k in outcome.private_keys),
    )


def parse_certificate_file(data: bytes, filename: str, password: Optional[str] = None) -> ParseOutcome:
    """Parse a certificate file, choosing the format from its extension.

    Parameters
    ----------
    data : bytes
        File contents.
    filename : str
        File name, only its extension is used (case-insensitive).
    password : str, optional
        PKCS#12 password. Currently unused.

    Returns
    -------
    ParseOutcome
        Records are tagged with ``filename`` as their source.

    Raises
    ------
    DecodeError
        For ``.der`` files that are not a certificate, and for other files
        that contain neither PEM blocks nor a DER certificate.
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext in PKCS12_EXTENSIONS:
        outcome = parse_pkcs12(data, password)
    elif ext in DER_EXTENSIONS:
        outcome = parse_der(data)
    else:
        outcome = _parse_pem_or_der(data)
    return _with_source(outcome, filename)
