#!/usr/bin/env python3

# Copyright (c) 2019 - 2020 Nordic Semiconductor ASA
# Copyright (c) 2024, The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

# This script uses the bindcheck library to validate devicetree source (.dts)
# files against devicetree bindings in YAML format. Violations are printed in
# the "<file>: <node>: <problem>" format known from dtc, followed by the
# binding that was violated.

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", "src"))

from bindcheck import (
    check_bindings,
    default_bindings_dir,
    default_vendor_prefixes_txt,
    setup_logging,
)


def main() -> int:
    args = parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    violations = check_bindings(
        dts_paths=args.dts,
        bindings_dirs=args.bindings_dirs,
        vendor_prefix_files=args.vendor_prefixes,
        check_examples=args.check_examples,
        strict=args.Werror,
        warn_reg_unit_address_mismatch="simple_bus_reg" not in args.no_warn,
        warn_i2c_address="i2c_bus_reg" not in args.no_warn,
    )

    for violation in violations:
        print(violation, file=sys.stderr)

    return 1 if violations else 0


def parse_args() -> argparse.Namespace:
    # Returns parsed command-line arguments

    parser = argparse.ArgumentParser(allow_abbrev=False)
    parser.add_argument(
        "--dts",
        action="append",
        default=[],
        help="DTS file to check; may be given multiple times",
    )
    parser.add_argument(
        "--bindings-dirs",
        nargs="+",
        default=[default_bindings_dir()],
        help="directory with bindings in YAML format, we allow multiple"
        " (default: the bindings that ship with bindcheck)",
    )
    parser.add_argument(
        "--vendor-prefixes",
        action="append",
        default=[],
        help="vendor-prefixes.txt path; used for validation; may be given"
        f" multiple times (bindcheck ships {default_vendor_prefixes_txt()})",
    )
    parser.add_argument(
        "--check-examples",
        action="store_true",
        help="also validate the examples given in the bindings",
    )
    parser.add_argument(
        "--Werror",
        action="store_true",
        help="if set, warnings become errors",
    )
    parser.add_argument(
        "-Wno",
        dest="no_warn",
        action="append",
        default=[],
        choices=["simple_bus_reg", "i2c_bus_reg"],
        help="disable a warning; may be given multiple times",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="print debug output",
    )

    args = parser.parse_args()
    if not args.dts and not args.check_examples:
        parser.error("nothing to do, give --dts and/or --check-examples")

    return args


if __name__ == "__main__":
    sys.exit(main())
