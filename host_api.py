"""JSON-compatible entry points for a calling UI.

Records are exposed as plain dicts with the camelCase keys the UI reads.
These are views over the records from ``cert_records``; chain and bundle
logic lives in ``chain_lib``.
"""

from __future__ import annotations

import json
import logging
import sys
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Union

import cert_parser
import chain_lib
from cert_errors import CertificateError, DeserializationError
from cert_records import CertificateRecord, ParseOutcome, PrivateKeyRecord

__all__ = [
    "init_diagnostics",
    "certificate_view",
    "private_key_view",
    "outcome_view",
    "parse_pem",
    "parse_der",
    "parse_certificate_file",
    "build_certificate_chain",
    "generate_bundle",
]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_diagnostics_ready = False


def init_diagnostics(level: int = logging.INFO) -> bool:
    """Install a stderr log handler on the root logger.

    Only the first call has an effect. Returns True if this call installed
    the handler.
    """
    global _diagnostics_ready
    if _diagnostics_ready:
        return False
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    _diagnostics_ready = True
    return True


def certificate_view(record: CertificateRecord) -> Dict[str, Any]:
    return {
        "type": "certificate",
        "pem": record.pem,
        "source": record.source,
        "info": {
            "subject": dict(record.subject),
            "issuer": dict(record.issuer),
            "serialNumber": record.serial_number,
            "validFrom": record.valid_from,
            "validTo": record.valid_to,
            "subjectCommonName": record.subject_common_name,
            "issuerCommonName": record.issuer_common_name,
            "isCA": record.is_ca,
            "isSelfSigned": record.is_self_signed,
        },
    }


def private_key_view(record: PrivateKeyRecord) -> Dict[str, Any]:
    return {
        "type": "privateKey",
        "pem": record.pem,
        "encrypted": record.encrypted,
        "source": record.source,
    }


def outcome_view(outcome: ParseOutcome) -> Dict[str, Any]:
    return {
        "certificates": [certificate_view(c) for c in outcome.certificates],
        "privateKeys": [private_key_view(k) for k in outcome.private_keys],
        "needsPassword": outcome.needs_password,
        "error": outcome.error,
    }


def _error_view(error: CertificateError) -> Dict[str, Any]:
    return outcome_view(ParseOutcome(error=str(error)))


def parse_pem(data: Union[bytes, str]) -> Dict[str, Any]:
    try:
        return outcome_view(cert_parser.parse_pem(data))
    except CertificateError as e:
        return _error_view(e)


def parse_der(data: bytes) -> Dict[str, Any]:
    try:
        return outcome_view(cert_parser.parse_der(data))
    except CertificateError as e:
        return _error_view(e)


def parse_certificate_file(data: bytes, filename: str, password: Optional[str] = None) -> Dict[str, Any]:
    """Parse a file and return the outcome view.

    Decode and encoding failures are reported in the ``error`` field with
    empty certificate and key lists.
    """
    try:
        return outcome_view(cert_parser.parse_certificate_file(data, filename, password))
    except CertificateError as e:
        return _error_view(e)


_CHAIN_FIELDS = {
    "subjectCommonName": "subject_common_name",
    "issuerCommonName": "issuer_common_name",
    "isCA": "is_ca",
    "isSelfSigned": "is_self_signed",
}


def _load_items(data: Union[str, bytes, Sequence[Any]]) -> List[Any]:
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise DeserializationError(f"Deserialization error: {e}") from e
    if not isinstance(data, (list, tuple)):
        raise DeserializationError(
            f"Deserialization error: expected a list, got {type(data).__name__}"
        )
    return list(data)


def _chain_node(item: Any, idx: int) -> SimpleNamespace:
    if not isinstance(item, dict):
        raise DeserializationError(f"Deserialization error: item {idx} is not an object")
    info = item.get("info", item)
    if not isinstance(info, dict):
        raise DeserializationError(f"Deserialization error: item {idx} has no certificate info")
    values = {}
    for key, attr in _CHAIN_FIELDS.items():
        if key not in info:
            raise DeserializationError(f"Deserialization error: item {idx} is missing field `{key}`")
        values[attr] = info[key]
    for attr in ("is_ca", "is_self_signed"):
        if not isinstance(values[attr], bool):
            raise DeserializationError(f"Deserialization error: item {idx} field `{attr}` must be a boolean")
    for attr in ("subject_common_name", "issuer_common_name"):
        if not isinstance(values[attr], str):
            raise DeserializationError(f"Deserialization error: item {idx} field `{attr}` must be a string")
    return SimpleNamespace(**values)


def build_certificate_chain(records: Union[str, bytes, Sequence[Any]]) -> List[List[int]]:
    """Build chains from certificate views.

    ``records`` is a JSON string or a list whose items are certificate views
    (``{"pem": ..., "info": {...}}``) or bare info dicts.

    Raises
    ------
    DeserializationError
        If the input cannot be read as a list of certificate infos.
    """
    items = _load_items(records)
    nodes = [_chain_node(item, idx) for idx, item in enumerate(items)]
    logger.debug("Building chains for %d certificates", len(nodes))
    return chain_lib.build_certificate_chain(nodes)


def generate_bundle(
    chain_indices: Sequence[int],
    records: Union[str, bytes, Sequence[Any]],
    private_key_pem: Optional[str] = None,
) -> str:
    """Compose a bundle from certificate views or PEM strings.

    Raises
    ------
    DeserializationError
        If an item is neither a PEM string nor a mapping with a ``pem`` key,
        if a chain index is not a non-negative integer, or if the key is
        not PEM text.
    """
    items = _load_items(records)
    pems = []
    for idx, item in enumerate(items):
        if isinstance(item, str):
            pems.append(item)
        elif isinstance(item, dict) and isinstance(item.get("pem"), str):
            pems.append(item["pem"])
        else:
            raise DeserializationError(f"Deserialization error: item {idx} has no PEM text")
    if isinstance(chain_indices, (str, bytes)) or not isinstance(chain_indices, (list, tuple)):
        raise DeserializationError("Deserialization error: chain indices must be a list")
    for pos, i in enumerate(chain_indices):
        if isinstance(i, bool) or not isinstance(i, int) or i < 0:
            raise DeserializationError(
                f"Deserialization error: chain index {pos} must be a non-negative integer, got {i!r}"
            )
    if private_key_pem is not None and not isinstance(private_key_pem, str):
        raise DeserializationError("Deserialization error: private key must be PEM text")
    return chain_lib.generate_bundle(list(chain_indices), pems, private_key_pem)
