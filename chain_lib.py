"""Chain reconstruction and server bundle composition.

Chains are built from common names only: a certificate's issuer is the
first not yet used certificate whose subject CN equals its issuer CN. This
is a heuristic for ordering a bundle, not a signature check. Each walk does
a linear scan per step, so the cost grows quadratically with bundle size.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from cert_records import CertificateRecord, PrivateKeyRecord

__all__ = [
    "build_certificate_chain",
    "chain_is_complete",
    "generate_bundle",
    "inner_join_on",
    "inner_join_using",
    "pair_keys_with_certificates",
    "remove_duplicate_records",
]

Chain = List[int]


def _find_issuer(records: Sequence[Any], issuer_cn: str, visited: set) -> Optional[int]:
    # Lowest index wins when several records share the CN.
    for idx, candidate in enumerate(records):
        if idx not in visited and candidate.subject_common_name == issuer_cn:
            return idx
    return None


def build_certificate_chain(records: Sequence[Any]) -> List[Chain]:
    """Order records into leaf-to-root chains.

    Parameters
    ----------
    records : sequence
        Objects with ``subject_common_name``, ``issuer_common_name``,
        ``is_ca`` and ``is_self_signed`` attributes.

    Returns
    -------
    list of list of int
        One chain of record indices per leaf candidate (every non-CA or
        self-signed record), leaf first. A chain ends at a self-signed
        record, at a record whose issuer is not in the bundle, or where the
        walk would revisit a record.
    """
    chains = []
    leaves = [idx for idx, rec in enumerate(records) if not rec.is_ca or rec.is_self_signed]

    for leaf_idx in leaves:
        chain = []
        visited = set()
        current = leaf_idx
        while current is not None and current not in visited:
            visited.add(current)
            chain.append(current)
            record = records[current]
            if record.is_self_signed:
                break
            current = _find_issuer(records, record.issuer_common_name, visited)
        chains.append(chain)
    return chains


def chain_is_complete(chain: Sequence[int], records: Sequence[Any]) -> bool:
    """True if the chain ends in a self-signed record."""
    return bool(chain) and records[chain[-1]].is_self_signed


def _pem_of(item: Union[CertificateRecord, PrivateKeyRecord, Mapping, str]) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        return item["pem"]
    return item.pem


def generate_bundle(
    chain_indices: Sequence[int],
    certificates: Sequence[Union[CertificateRecord, Mapping, str]],
    private_key: Optional[Union[PrivateKeyRecord, str]] = None,
) -> str:
    """Concatenate a chain and an optional key into server-ready PEM text.

    Parameters
    ----------
    chain_indices : sequence of int
        Indices into ``certificates``, leaf first. Indices outside the list
        are skipped.
    certificates : sequence
        Records, record mappings with a ``pem`` key, or PEM strings.
    private_key : PrivateKeyRecord or str, optional
        Key appended after a blank line.

    Returns
    -------
    str
        Bundle text with surrounding whitespace removed.
    """
    parts = []
    for idx in chain_indices:
        if 0 <= idx < len(certificates):
            parts.append(_pem_of(certificates[idx]) + "\n")
    if private_key is not None:
        parts.append("\n" + _pem_of(private_key))
    return "".join(parts).strip()


def _check_sides(left, right) -> None:
    if not isinstance(left, (list, tuple)) or not isinstance(right, (list, tuple)):
        raise TypeError("Both arguments must be lists")


def inner_join_on(left: Sequence, right: Sequence, condition: Callable[[Any, Any], bool]) -> List[Tuple[Any, Any]]:
    """Pairs ``(l, r)`` for which ``condition(l, r)`` holds, left-major order."""
    _check_sides(left, right)
    if not callable(condition):
        raise TypeError("condition must be callable")
    return [(l_item, r_item) for l_item in left for r_item in right if condition(l_item, r_item)]


_MISSING = object()


def _field(item, key):
    if isinstance(item, Mapping):
        return item.get(key, _MISSING)
    return getattr(item, key, _MISSING)


def inner_join_using(left: Sequence, right: Sequence, keys: Union[str, Sequence[str]]) -> List[Tuple[Any, Any]]:
    """Pairs whose values are equal for every key in ``keys``.

    Items may be mappings or objects. An item missing a key matches
    nothing.
    """
    _check_sides(left, right)
    if isinstance(keys, str):
        keys = [keys]
    if not isinstance(keys, (list, tuple)) or not keys or not all(isinstance(k, str) for k in keys):
        raise TypeError("keys must be a non-empty string or list of strings")

    def matches(l_item, r_item):
        for key in keys:
            l_value = _field(l_item, key)
            if l_value is _MISSING or l_value != _field(r_item, key):
                return False
        return True

    return inner_join_on(left, right, matches)


def pair_keys_with_certificates(
    certificates: Sequence[CertificateRecord],
    private_keys: Sequence[PrivateKeyRecord],
) -> List[Tuple[CertificateRecord, PrivateKeyRecord]]:
    """Pair certificates with private keys read from the same file."""
    return inner_join_on(
        list(certificates),
        list(private_keys),
        lambda cert, key: cert.source is not None and cert.source == key.source,
    )


def remove_duplicate_records(records: Sequence[CertificateRecord]) -> List[CertificateRecord]:
    """
    Removes duplicate certificates based on their canonicalized Base64 content.
    The first occurrence is kept.
    """
    seen = set()
    unique = []
    for record in records:
        b64_part = re.search(
            r"-----BEGIN CERTIFICATE-----(.*)-----END CERTIFICATE-----",
            record.pem,
            re.DOTALL
        )
        if not b64_part:
            continue
        b64_clean = re.sub(r"\s+", "", b64_part.group(1)).encode("ascii")
        h = hashlib.sha1(b64_clean).hexdigest()
        if h not in seen:
            seen.add(h)
            unique.append(record)
    return unique
