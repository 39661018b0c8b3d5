#!/usr/bin/env python3
"""
Reconstruct X.509 certificate chains from one or more certificate files
(PEM, DER or PKCS#12, local paths or URLs).

Chains are matched by common name. It prints complete chains first and
incomplete chains last. Duplicate certificates across files are removed.
"""
import argparse
import logging
import sys

from cert_io import load_bundle
from chain_lib import build_certificate_chain, chain_is_complete, remove_duplicate_records
from host_api import init_diagnostics


def describe(idx, record):
    """One line summary of a certificate."""
    source = f" ({record.source})" if record.source else ""
    return (f"#{idx} | CN={record.subject_common_name} | ISSUER={record.issuer_common_name}"
            f" | SERIAL={record.serial_number} | VALID {record.valid_from} -> {record.valid_to}{source}")


def print_chain(chain, records, out):
    leaf, *ancestors = chain
    print(f"LEAF {describe(leaf, records[leaf])}", file=out)
    for idx in ancestors:
        record = records[idx]
        if record.is_self_signed:
            print(f"    ROOT {describe(idx, record)}", file=out)
        else:
            print(f"  INTERMEDIATE {describe(idx, record)}", file=out)
    print(f"  Chain length: {len(chain)}\n", file=out)


def main(argv=None, out=sys.stdout):
    parser = argparse.ArgumentParser(description="Build certificate chains from certificate files.")
    parser.add_argument("inputs", nargs="+", help="Certificate files or URLs (PEM, DER, PFX/P12)")
    parser.add_argument("--password", help="Password for PKCS#12 files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    init_diagnostics(logging.DEBUG if args.verbose else logging.WARNING)

    outcome = load_bundle(args.inputs, args.password)
    records = remove_duplicate_records(outcome.certificates)
    if not records:
        print("No certificates found.", file=out)
        return 1

    chains = build_certificate_chain(records)
    complete = [c for c in chains if chain_is_complete(c, records)]
    incomplete = [c for c in chains if not chain_is_complete(c, records)]

    for chain in complete:
        print_chain(chain, records, out)

    if incomplete:
        print("\nINCOMPLETE CHAINS:", file=out)
        for chain in incomplete:
            print_chain(chain, records, out)

    if outcome.private_keys:
        print(f"Private keys found: {len(outcome.private_keys)}", file=out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
