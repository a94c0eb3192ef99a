# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Contains all errors that may be thrown by the binding checker library.

The errors are organized in a hierarchy, with the base class being BCError.

The following classes are defined:
- BCError: Base class for all errors in the binding checker library.
- DTError: Error related to devicetree source parsing.
- BindingError: Error related to loading or sanity checking bindings.
- CheckError: Error raised by the checker, e.g. for warnings in strict mode.

Schema violations found in devicetree nodes are not errors. They are reported
as validator.Violation objects.

Errors are kept in a separate module to avoid circular imports.
"""


class BCError(Exception):
    "Exception raised for binding checker related errors"


class DTError(BCError):
    "Exception raised for devicetree-related errors"


class BindingError(BCError):
    "Exception raised for binding-related errors"


class CheckError(BCError):
    "Exception raised for checker-related errors"
