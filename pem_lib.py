"""Splitting PEM text into blocks and rendering canonical PEM.

A PEM block is a base64 payload framed by ``-----BEGIN <TAG>-----`` and
``-----END <TAG>-----`` lines. Broken blocks are skipped with a warning so
one damaged entry never hides the rest of a bundle.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

__all__ = [
    "PEM_LINE_LENGTH",
    "PemBlock",
    "split_pem_blocks",
    "to_pem",
]

logger = logging.getLogger(__name__)

PEM_LINE_LENGTH = 64

_BEGIN_RE = re.compile(r"^-----BEGIN ([^-]+)-----$")
_END_RE = re.compile(r"^-----END ([^-]+)-----$")
_HEADER_RE = re.compile(r"^([A-Za-z0-9-]+):\s*(.*)$")


@dataclass(frozen=True)
class PemBlock:
    """One decoded PEM block."""

    tag: str
    der: bytes
    headers: Tuple[Tuple[str, str], ...] = ()


def to_pem(der: bytes, tag: str, headers: Sequence[Tuple[str, str]] = ()) -> str:
    """Render DER bytes as canonical PEM text.

    Parameters
    ----------
    der : bytes
        Payload to encode.
    tag : str
        Label used in the BEGIN and END lines, e.g. ``CERTIFICATE``.
    headers : sequence of (str, str), optional
        RFC 1421 style headers emitted before the payload.

    Returns
    -------
    str
        PEM text wrapped at 64 characters per line, without a trailing newline.
    """
    encoded = base64.b64encode(der).decode("ascii")
    lines = [f"-----BEGIN {tag}-----"]
    if headers:
        lines.extend(f"{name}: {value}" for name, value in headers)
        lines.append("")
    lines.extend(
        encoded[i:i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH)
    )
    lines.append(f"-----END {tag}-----")
    return "\n".join(lines)


def _collect_block(lines: List[str], start: int, tag: str):
    """Collect payload lines after a BEGIN marker.

    Returns ``(end_index, headers, payload)`` or ``None`` when no END marker
    with the same tag closes the block.
    """
    headers = []
    payload = []
    for idx in range(start + 1, len(lines)):
        line = lines[idx].strip()
        if not line:
            continue
        end = _END_RE.match(line)
        if end:
            if end.group(1).strip() == tag:
                return idx, tuple(headers), "".join(payload)
            return None
        if _BEGIN_RE.match(line):
            return None
        header = _HEADER_RE.match(line)
        if header and not payload:
            headers.append((header.group(1), header.group(2).strip()))
            continue
        payload.append(line)
    return None


def split_pem_blocks(text: str) -> List[PemBlock]:
    """Split PEM text into decoded blocks.

    Blocks without a matching END marker, or whose payload is not valid
    base64, are skipped and scanning resumes at the line after their BEGIN
    marker. An input without any block yields an empty list.
    """
    lines = text.splitlines()
    blocks = []
    i = 0
    while i < len(lines):
        begin = _BEGIN_RE.match(lines[i].strip())
        if not begin:
            i += 1
            continue

        tag = begin.group(1).strip()
        collected = _collect_block(lines, i, tag)
        if collected is None:
            logger.warning("Skipping %s block at line %d: no matching END marker", tag, i + 1)
            i += 1
            continue

        end_idx, headers, payload = collected
        try:
            der = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("Skipping %s block at line %d: invalid base64 (%s)", tag, i + 1, e)
            i += 1
            continue

        blocks.append(PemBlock(tag=tag, der=der, headers=headers))
        i = end_idx + 1
    return blocks
