#!/usr/bin/env python3
"""
This script composes a server-ready PEM bundle (certificate chain followed by
the private key) from one or more certificate and key files, e.g. for an
nginx ssl_certificate file.
"""
import argparse
import logging
import sys

from cert_errors import CertificateError
from cert_io import load_bundle, read_input
from cert_parser import parse_pem
from chain_lib import (
    build_certificate_chain,
    generate_bundle,
    pair_keys_with_certificates,
    remove_duplicate_records,
)
from host_api import init_diagnostics

logger = logging.getLogger(__name__)


def pick_key(leaf, private_keys, key_file=None):
    """Key from --key-file if given, else the key read from the leaf's file."""
    if key_file:
        data = read_input(key_file)
        if data is None:
            raise CertificateError(f"Key file not readable: {key_file}")
        keys = parse_pem(data).private_keys
        if not keys:
            raise CertificateError(f"No private key found in {key_file}")
        return keys[0]
    pairs = pair_keys_with_certificates([leaf], private_keys)
    return pairs[0][1] if pairs else None


def main(argv=None):
    parser = argparse.ArgumentParser(description="Compose a certificate chain and key into one PEM bundle.")
    parser.add_argument("inputs", nargs="+", help="Certificate files or URLs (PEM, DER, PFX/P12)")
    parser.add_argument("-o", "--output", required=True, help="Output filename (no default)")
    parser.add_argument("--chain", type=int, default=0, help="Index of the chain to write (default: 0)")
    parser.add_argument("--key-file", help="PEM file holding the private key")
    parser.add_argument("--password", help="Password for PKCS#12 files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    init_diagnostics(logging.DEBUG if args.verbose else logging.WARNING)

    outcome = load_bundle(args.inputs, args.password)
    try:
        outcome.raise_for_error()
    except CertificateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    records = remove_duplicate_records(outcome.certificates)
    chains = build_certificate_chain(records)
    if not 0 <= args.chain < len(chains):
        print(f"Error: chain {args.chain} not found ({len(chains)} chains available)", file=sys.stderr)
        return 1
    chain = chains[args.chain]

    try:
        key = pick_key(records[chain[0]], outcome.private_keys, args.key_file)
    except CertificateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if key is not None and key.encrypted:
        logger.warning("Private key is encrypted, the server will need its passphrase")

    with open(args.output, "w", encoding="ascii") as f:
        f.write(generate_bundle(chain, records, key) + "\n")

    key_note = " and private key" if key is not None else ""
    print(f"Wrote chain of {len(chain)} certificates{key_note} to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
