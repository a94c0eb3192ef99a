# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Loads devicetree source (.dts) with dtlib from the 'devicetree' package.

dtlib only parses files. Source text, like the examples in bindings, is
written to a temporary file first. Errors from dtlib are wrapped in DTError,
so that users of this library only need to handle BCError.
"""

from __future__ import annotations

import logging
import os
import tempfile

from typing import NoReturn

from devicetree.dtlib import DT, DTError as DTLibError

from bindcheck.error import DTError

#
# Private constants
#

_LOG = logging.getLogger(__name__)

#
# Public functions
#


def load_dts(dts_path: str) -> DT:
    """
    Parses the devicetree source file 'dts_path' and returns a dtlib.DT.

    Raises DTError if the file can't be read or parsed.
    """
    _LOG.debug("parsing %s", dts_path)
    try:
        return DT(dts_path)
    except DTLibError as e:
        raise DTError(e) from e
    except (OSError, UnicodeDecodeError) as e:
        _err(f"could not read '{dts_path}': {e}")


def load_dts_source(source: str, filename: str = "<string>") -> DT:
    """
    Parses the devicetree source text 'source' and returns a dtlib.DT.

    filename (default: "<string>"):
      Names the source in error messages. It also becomes the 'filename'
      attribute of the returned DT.

    Raises DTError if the source can't be parsed.
    """
    with tempfile.TemporaryDirectory() as tmp_dir:
        tmp_path = os.path.join(tmp_dir, "source.dts")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(source)

        try:
            dt = DT(tmp_path)
        except DTLibError as e:
            raise DTError(str(e).replace(tmp_path, filename)) from e

    dt.filename = filename
    return dt


def wrap_example(example: str, index: int = 0) -> str:
    """
    Returns devicetree source for the binding example 'example', which is a
    node fragment without a root node.

    Like in dt-schema, the fragment is put into an 'example-<index>' node
    below the root node. Both nodes have '#address-cells = <1>' and
    '#size-cells = <1>'. A fragment that defines the node 'i2c' ends up at
    '/example-0/i2c'.
    """
    return (
        "/dts-v1/;\n"
        "\n"
        "/ {\n"
        "\t#address-cells = <1>;\n"
        "\t#size-cells = <1>;\n"
        "\n"
        f"\texample-{index} {{\n"
        "\t\t#address-cells = <1>;\n"
        "\t\t#size-cells = <1>;\n"
        "\n"
        f"{example}\n"
        "\t};\n"
        "};\n"
    )


#
# Private global functions
#


def _err(msg) -> NoReturn:
    raise DTError(msg)
