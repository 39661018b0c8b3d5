"""Certificate and private key records built from decoded DER.

Decoding is delegated to ``cryptography``; this module only turns the
decoded certificate into a flat, immutable record with the identity and
validity fields a user needs to pick a chain.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from email.utils import format_datetime
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import NameOID

from cert_errors import CertificateError, DecodeError, UnsupportedFormatError
from pem_lib import to_pem

__all__ = [
    "ATTRIBUTE_CODES",
    "INVALID_DATE",
    "UNKNOWN_NAME",
    "CertificateRecord",
    "PrivateKeyRecord",
    "ParseOutcome",
    "decode_certificate",
    "extract_name_attributes",
    "get_common_name",
    "format_serial",
    "build_certificate_record",
    "build_private_key_record",
]

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
INVALID_DATE = "Invalid date"

ATTRIBUTE_CODES = {
    NameOID.COMMON_NAME.dotted_string: "CN",
    NameOID.COUNTRY_NAME.dotted_string: "C",
    NameOID.LOCALITY_NAME.dotted_string: "L",
    NameOID.STATE_OR_PROVINCE_NAME.dotted_string: "ST",
    NameOID.ORGANIZATION_NAME.dotted_string: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME.dotted_string: "OU",
}


@dataclass(frozen=True)
class CertificateRecord:
    """Identity and validity data of one certificate plus its canonical PEM.

    ``subject`` and ``issuer`` are read-only mappings and take no part in
    hashing.
    """

    subject: Mapping[str, str] = field(hash=False)
    issuer: Mapping[str, str] = field(hash=False)
    subject_common_name: str
    issuer_common_name: str
    serial_number: str
    valid_from: str
    valid_to: str
    is_ca: bool
    is_self_signed: bool
    pem: str
    source: Optional[str] = None

    def __post_init__(self):
        for name in ("subject", "issuer"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))


@dataclass(frozen=True)
class PrivateKeyRecord:
    pem: str
    encrypted: bool
    tag: str = "PRIVATE KEY"
    source: Optional[str] = None


@dataclass(frozen=True)
class ParseOutcome:
    """Result of one parse call."""

    certificates: Tuple[CertificateRecord, ...] = ()
    private_keys: Tuple[PrivateKeyRecord, ...] = ()
    needs_password: bool = False
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.certificates and not self.private_keys

    def raise_for_error(self) -> None:
        """Raise if the parse reported an error.

        Raises
        ------
        UnsupportedFormatError
            If the input needs a password (PKCS#12).
        CertificateError
            For any other reported error.
        """
        if self.needs_password:
            raise UnsupportedFormatError(self.error or "Password required")
        if self.error:
            raise CertificateError(self.error)

    @classmethod
    def merge(cls, *outcomes: "ParseOutcome") -> "ParseOutcome":
        """Combine outcomes of several files, keeping their order.

        ``needs_password`` is set if any outcome needs one; error messages
        are joined with ``"; "``.
        """
        errors = [o.error for o in outcomes if o.error]
        return cls(
            certificates=tuple(c for o in outcomes for c in o.certificates),
            private_keys=tuple(k for o in outcomes for k in o.private_keys),
            needs_password=any(o.needs_password for o in outcomes),
            error="; ".join(errors) if errors else None,
        )


def decode_certificate(der: bytes) -> x509.Certificate:
    """Decode DER bytes into a certificate.

    Raises
    ------
    DecodeError
        If the bytes are not a well-formed X.509 certificate.
    """
    try:
        return x509.load_der_x509_certificate(bytes(der))
    except ValueError as e:
        raise DecodeError(f"Failed to parse DER certificate: {e}") from e


def extract_name_attributes(name: x509.Name) -> Dict[str, str]:
    """Map the recognized attributes of a name to their short codes.

    Attributes with other OIDs, and values that are not text, are skipped.
    """
    attrs = {}
    for attr in name:
        code = ATTRIBUTE_CODES.get(attr.oid.dotted_string)
        if code is None:
            continue
        if not isinstance(attr.value, str):
            logger.debug("Skipping non-text %s attribute", code)
            continue
        attrs[code] = attr.value
    return attrs


def get_common_name(attrs: Dict[str, str], default: str = UNKNOWN_NAME) -> str:
    """Return the CN from an attribute map, or ``default``."""
    return attrs.get("CN", default)


def format_serial(serial: int) -> str:
    """Render a serial number as lowercase hex without a ``0x`` prefix.

    Negative serials, which some issuers encode by mistake, are rendered
    as their two's complement DER content bytes.
    """
    if serial < 0:
        length = ((-serial - 1).bit_length() + 8) // 8
        serial += 1 << (8 * length)
    return format(serial, "x")


def _read_name(cert: x509.Certificate, which: str) -> Optional[x509.Name]:
    try:
        return getattr(cert, which)
    except ValueError as e:
        logger.warning("Could not read certificate %s name: %s", which, e)
        return None


def _read_is_ca(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        return False
    except (x509.DuplicateExtension, ValueError) as e:
        logger.warning("Could not read basic constraints: %s", e)
        return False


def _format_validity(cert: x509.Certificate, bound: str) -> str:
    try:
        try:
            moment = getattr(cert, f"not_valid_{bound}_utc")
        except AttributeError:
            moment = getattr(cert, f"not_valid_{bound}").replace(tzinfo=datetime.timezone.utc)
        return format_datetime(moment)
    except (ValueError, OverflowError) as e:
        logger.warning("Could not read not_valid_%s: %s", bound, e)
        return INVALID_DATE


def build_certificate_record(der: bytes, source: Optional[str] = None) -> CertificateRecord:
    """Decode one DER certificate into a CertificateRecord.

    Parameters
    ----------
    der : bytes
        DER encoded certificate.
    source : str, optional
        Name of the file the certificate was read from.

    Returns
    -------
    CertificateRecord

    Raises
    ------
    DecodeError
        If ``der`` is not a certificate.
    """
    cert = decode_certificate(der)

    subject_name = _read_name(cert, "subject")
    issuer_name = _read_name(cert, "issuer")
    subject = extract_name_attributes(subject_name) if subject_name is not None else {}
    issuer = extract_name_attributes(issuer_name) if issuer_name is not None else {}

    # Full name comparison, two different names may share a CN.
    is_self_signed = (
        subject_name is not None and issuer_name is not None and subject_name == issuer_name
    )

    return CertificateRecord(
        subject=subject,
        issuer=issuer,
        subject_common_name=get_common_name(subject),
        issuer_common_name=get_common_name(issuer),
        serial_number=format_serial(cert.serial_number),
        valid_from=_format_validity(cert, "before"),
        valid_to=_format_validity(cert, "after"),
        is_ca=_read_is_ca(cert),
        is_self_signed=is_self_signed,
        pem=to_pem(bytes(der), "CERTIFICATE"),
        source=source,
    )


def build_private_key_record(der: bytes, tag: str, headers=(), source: Optional[str] = None) -> PrivateKeyRecord:
    """Re-render a private key block canonically. The key itself is not parsed."""
    return PrivateKeyRecord(
        pem=to_pem(der, tag, headers),
        encrypted="ENCRYPTED" in tag,
        tag=tag,
        source=source,
    )
