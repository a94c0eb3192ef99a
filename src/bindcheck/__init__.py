# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
The bindcheck package validates devicetree source against devicetree bindings
written in the JSON-Schema based YAML format.

Note: Only use objects that are exported by the top-level bindcheck package and
do not access private (_-prefixed) identifiers. In particular note that the
library is not meant to expose the fixups or the jsonschema objects it uses
internally.

Hint: You can view the documentation of this package with pydoc3, e.g.
'$> pydoc3 bindcheck.checker'
"""

# Implementation notes for the bindcheck package
# ----------------------------------------------
#
# Bindings (bindings.py) are loaded from YAML and sanity checked, then turned
# into plain JSON schemas (fixups.py). Devicetree source is parsed with dtlib
# from the 'devicetree' package (devicetree/dts.py) and each node is converted
# into a JSON-like instance (devicetree/instance.py) that is validated with
# jsonschema (validator.py).
# The checker (checker.py) maps nodes to bindings and adds the checks that
# can't be expressed in a schema.
#
# None of the modules in this package is meant to have any global state. It
# should be possible to create several BindingChecker instances with
# independent bindings and flags. If you need to add a configuration
# parameter, add it as a constructor argument.

import logging
import sys

from typing import Optional

# Note: We use the 'import as X from X' convention to mark public objects to be
# exported by the package. Please do not remove those.

# Logging helper for command line clients. Call it before any other function
# in this module.
from bindcheck.log import setup_logging as setup_logging

# Bindings:
from bindcheck.bindings import (
    Binding as Binding,
    bindings_from_dirs as bindings_from_dirs,
    bindings_from_paths as bindings_from_paths,
    default_bindings_dir as default_bindings_dir,
)

# Devicetree source. The returned trees are dtlib.DT objects. DTError from
# dtlib is wrapped in this package's DTError.
from bindcheck.devicetree.dts import (
    load_dts as load_dts,
    load_dts_source as load_dts_source,
    wrap_example as wrap_example,
)

# Validation:
from bindcheck.validator import (
    BindingValidator as BindingValidator,
    ValidationResult as ValidationResult,
    Violation as Violation,
    ViolationKind as ViolationKind,
    validate_node as validate_node,
)
from bindcheck.checker import (
    BindingChecker as BindingChecker,
    default_vendor_prefixes_txt as default_vendor_prefixes_txt,
    load_vendor_prefixes_txt as load_vendor_prefixes_txt,
)

# Errors that may be thrown by this library:
from bindcheck.error import (
    # Base error class: Catch this if you want to catch all errors thrown by
    # this library.
    BCError as BCError,
    # Module-specific errors:
    DTError as DTError,  # Error related to devicetree source parsing.
    BindingError as BindingError,  # Error related to bindings processing.
    CheckError as CheckError,  # Error raised by checks in strict mode.
)

_LOG = logging.getLogger(__name__)


def check_bindings(
    dts_paths: list[str],
    bindings_dirs: Optional[list[str]] = None,
    vendor_prefix_files: Optional[list[str]] = None,
    check_examples: bool = False,
    strict: bool = False,
    warn_reg_unit_address_mismatch: bool = True,
    warn_i2c_address: bool = True,
) -> list[Violation]:
    """
    Load the bindings in 'bindings_dirs' (default: the bindings that ship with
    this library), validate all devicetree source files in 'dts_paths' against
    them and return the violations found. If 'check_examples' is True, the
    examples of all bindings are validated, too.

    Exits with an error message if the bindings or devicetree sources can't
    be processed.
    """
    try:
        vendor_prefixes: dict[str, str] = {}
        for vendor_prefix_file in vendor_prefix_files or []:
            vendor_prefixes.update(load_vendor_prefixes_txt(vendor_prefix_file))

        bindings = bindings_from_dirs(bindings_dirs or [default_bindings_dir()])
        _LOG.debug("loaded %d binding(s)", len(bindings))

        checker = BindingChecker(
            bindings,
            vendor_prefixes=vendor_prefixes,
            strict=strict,
            warn_reg_unit_address_mismatch=warn_reg_unit_address_mismatch,
            warn_i2c_address=warn_i2c_address,
        )

        violations: list[Violation] = []

        if check_examples:
            for binding in bindings:
                violations.extend(checker.check_examples(binding))

        for dts_path in dts_paths:
            violations.extend(checker.check_dts(dts_path))

        return violations
    except BCError as e:
        sys.exit(f"binding check error: {e}")
