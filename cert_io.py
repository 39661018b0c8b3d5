"""Reading certificate inputs from disk or over HTTP for the command line tools."""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Iterable, Optional

import requests

from cert_errors import CertificateError
from cert_parser import parse_certificate_file
from cert_records import ParseOutcome

__all__ = [
    "TIMEOUT",
    "download_input",
    "read_input",
    "load_bundle",
]

logger = logging.getLogger(__name__)

TIMEOUT = 30


def _is_url(source: str) -> bool:
    return source.strip().lower().startswith(("http://", "https://"))


def download_input(url: str, *, timeout: int = TIMEOUT) -> Optional[bytes]:
    """Download a certificate file.

    Parameters
    ----------
    url : str
        http or https URL.
    timeout : int, optional
        Request timeout in seconds (default: 30).

    Returns
    -------
    bytes or None
        Response body, or None on any request failure.
    """
    try:
        r = requests.get(url.strip(), timeout=timeout)
        r.raise_for_status()
        return r.content
    except requests.RequestException as e:
        logger.error("Failed to download %s: %s", url, e)
        return None


def read_input(source: str) -> Optional[bytes]:
    """Read a local file or download a URL. Returns None if unavailable."""
    if _is_url(source):
        return download_input(source)
    if not os.path.isfile(source):
        logger.error("File not found: %s", source)
        return None
    with open(source, "rb") as f:
        return f.read()


def _source_name(source: str) -> str:
    if _is_url(source):
        return source.strip().split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1] or source
    return source


def load_bundle(sources: Iterable[str], password: Optional[str] = None) -> ParseOutcome:
    """Parse every source and merge the results.

    Unreadable sources and files that fail to parse are logged and reported
    in the merged outcome's ``error``; the other files are still used.
    """
    outcomes = []
    for source in sources:
        data = read_input(source)
        if data is None:
            outcomes.append(ParseOutcome(error=f"{source}: not readable"))
            continue
        try:
            outcome = parse_certificate_file(data, _source_name(source), password)
        except CertificateError as e:
            logger.warning("%s: %s", source, e)
            outcomes.append(ParseOutcome(error=f"{source}: {e}"))
            continue
        if outcome.error:
            logger.warning("%s: %s", source, outcome.error)
            outcome = dataclasses.replace(outcome, error=f"{source}: {outcome.error}")
        outcomes.append(outcome)
    return ParseOutcome.merge(*outcomes)
