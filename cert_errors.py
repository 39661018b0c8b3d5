"""Exception types raised while reading certificate bundles.

All of them derive from ValueError so callers that already catch the
decoder's ValueError keep working.
"""

from __future__ import annotations

__all__ = [
    "CertificateError",
    "DecodeError",
    "EncodingError",
    "UnsupportedFormatError",
    "DeserializationError",
]


class CertificateError(ValueError):
    """Base class for all bundle parsing errors."""


class DecodeError(CertificateError):
    """Bytes are not a well-formed DER X.509 certificate."""


class EncodingError(CertificateError):
    """Bytes could not be read as text where PEM text was expected."""


class UnsupportedFormatError(CertificateError):
    """Container format is recognized but cannot be opened (PKCS#12)."""


class DeserializationError(CertificateError):
    """Caller supplied record or chain data could not be read."""
