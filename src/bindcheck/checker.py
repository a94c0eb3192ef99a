# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Checks whole devicetrees and binding examples against a set of bindings.

The BindingChecker maps nodes to bindings via their 'compatible' property (or
the binding's 'select:'), validates each node against every binding that
applies to it, and performs some additional checks that are not expressible
in a binding:

- the unit address of a node must match the first address in its 'reg'
  property (like dtc's 'simple_bus_reg' check),
- compatible strings must use a known vendor prefix, if vendor prefixes were
  given,
- I2C devices must use 7-bit addresses, or 10-bit addresses with the
  I2C_TEN_BIT_ADDRESS flag set (like dtc's 'i2c_bus_reg' check).

These additional checks log warnings, or raise CheckError in strict mode.
"""

from __future__ import annotations

from collections import defaultdict
from copy import deepcopy
import logging
import os

from typing import Callable, Iterable, NoReturn, Optional

from devicetree.dtlib import DT, Node as DTNode, Type as DTType
from jsonschema import Draft201909Validator

from bindcheck.bindings import Binding
from bindcheck.devicetree.dts import load_dts, load_dts_source, wrap_example
from bindcheck.devicetree.instance import node_instance, reg_addr
from bindcheck.error import BindingError, CheckError, DTError
from bindcheck.fixups import fixup_binding_schema
from bindcheck.validator import BindingValidator, Violation

#
# Private constants
#

_LOG = logging.getLogger(__name__)

# Flags in the first 'reg' cell of I2C devices, see
# include/dt-bindings/i2c/i2c.h in Linux
_I2C_TEN_BIT_ADDRESS = 1 << 31
_I2C_OWN_SLAVE_ADDRESS = 1 << 30

#
# Public classes
#


class BindingChecker:
    """
    Validates devicetrees against bindings.

    These attributes are available on BindingChecker objects:

    bindings:
      The list of Binding objects nodes are checked against.

    compat2bindings:
      A dict that maps each compatible string to the bindings that list it.

    vendor_prefixes:
      A dict that maps vendor prefixes to vendor names. Empty if vendor
      prefixes are not checked.
    """

    def __init__(
        self,
        bindings: Iterable[Binding],
        vendor_prefixes: Optional[dict[str, str]] = None,
        strict: bool = False,
        warn_reg_unit_address_mismatch: bool = True,
        warn_i2c_address: bool = True,
    ):
        """
        BindingChecker constructor.

        bindings:
          The bindings to check nodes against, e.g. as returned by
          bindings.bindings_from_dirs().

        vendor_prefixes (default: None):
          A dict mapping vendor prefixes to vendor names, see
          load_vendor_prefixes_txt(). If given, compatible strings with an
          unknown vendor prefix are reported.

        strict (default: False):
          If True, the checks that normally log a warning raise CheckError
          instead.

        warn_reg_unit_address_mismatch (default: True):
          If True, a warning is logged if a node has a 'reg' property where the
          address of the first entry does not match the unit address of the
          node.

        warn_i2c_address (default: True):
          If True, a warning is logged for children of I2C bus nodes whose
          address does not fit into 7 (or, with I2C_TEN_BIT_ADDRESS, 10) bits.
        """
        self.bindings: list[Binding] = list(bindings)
        self.vendor_prefixes: dict[str, str] = vendor_prefixes or {}

        self._strict: bool = strict
        self._warn_reg_unit_address_mismatch: bool = warn_reg_unit_address_mismatch
        self._warn_i2c_address: bool = warn_i2c_address

        self.compat2bindings: dict[str, list[Binding]] = defaultdict(list)
        self._select_bindings: list[tuple[Binding, Optional[Draft201909Validator]]] = []

        for binding in self.bindings:
            select = binding.select
            if select is None:
                for compat in binding.compatibles:
                    self.compat2bindings[compat].append(binding)
            elif select is True:
                self._select_bindings.append((binding, None))
            elif isinstance(select, dict):
                self._select_bindings.append(
                    (binding, Draft201909Validator(fixup_binding_schema(deepcopy(select))))
                )

        self._validator = BindingValidator(self.bindings)

    def __repr__(self) -> str:
        return f"<BindingChecker with {len(self.bindings)} binding(s)>"

    def bindings_for_node(self, node: DTNode) -> list[Binding]:
        """
        Returns the bindings that apply to 'node', in the order of the node's
        compatible strings, followed by bindings selected with 'select:'.
        """
        res: list[Binding] = []

        for compat in _compatibles(node):
            for binding in self.compat2bindings.get(compat, []):
                if binding not in res:
                    res.append(binding)

        if self._select_bindings:
            instance = node_instance(node)
            for binding, select_validator in self._select_bindings:
                if binding in res:
                    continue
                if select_validator is None or select_validator.is_valid(instance):
                    res.append(binding)

        return res

    def check_tree(self, dt: DT) -> list[Violation]:
        """
        Validates all nodes in 'dt' (a dtlib.DT) against the bindings that
        apply to them and returns the list of violations. Nodes without a
        binding are not checked.

        Raises CheckError in strict mode if one of the additional checks
        described in the module docstring fails.
        """
        violations: list[Violation] = []

        for node in dt.node_iter():
            self._check_node(node)

            for binding in self.bindings_for_node(node):
                if binding.deprecated:
                    self._warn(f"{node.path} uses deprecated binding {binding.path}")

                result = self._validator.validate_node(binding, node)
                _add_violations(violations, result.violations)

        for violation in violations:
            _LOG.debug("violation: %s", violation)

        return violations

    def check_dts(self, dts_path: str) -> list[Violation]:
        """
        Parses the devicetree source file 'dts_path' and validates it, see
        check_tree().

        Raises DTError if the file can't be parsed.
        """
        _LOG.debug("checking %s", dts_path)
        return self.check_tree(load_dts(dts_path))

    def check_examples(self, binding: Binding) -> list[Violation]:
        """
        Parses the examples of 'binding' and validates the nodes in them that
        the binding applies to. Returns the list of violations.

        Raises BindingError if an example can't be parsed, as that is a bug in
        the binding.
        """
        violations: list[Violation] = []

        if binding not in self.bindings:
            _err(f"{binding.path} is not one of the bindings of {self!r}")

        for i, example in enumerate(binding.examples):
            try:
                dt = load_dts_source(
                    wrap_example(example, i), f"{binding.path}:example-{i}"
                )
            except DTError as e:
                _err_binding(f"{binding.path}: example {i} can't be parsed: {e}")

            matched = False
            for node in dt.node_iter():
                self._check_node(node)
                if binding not in self.bindings_for_node(node):
                    continue

                matched = True
                result = self._validator.validate_node(binding, node)
                _add_violations(violations, result.violations)

            if not matched and binding.compatibles:
                self._warn(
                    f"example {i} in {binding.path} has no node that is "
                    "checked by the binding"
                )

        return violations

    def _check_node(self, node: DTNode) -> None:
        # Checks that don't depend on the node's bindings

        if self._warn_reg_unit_address_mismatch:
            self._check_unit_addr(node)

        if self.vendor_prefixes and node.parent is not None:
            # As an exception, the root node can use whatever compatible it
            # wants. Other nodes get checked.
            for compat in _compatibles(node):
                if "," not in compat:
                    continue
                vendor = compat.split(",", 1)[0]
                if vendor not in self.vendor_prefixes:
                    self._warn(
                        f"node '{node.path}' compatible '{compat}' "
                        f"has unknown vendor prefix '{vendor}'"
                    )

        if self._warn_i2c_address and _on_i2c_bus(node):
            self._check_i2c_addr(node)

    def _check_unit_addr(self, node: DTNode) -> None:
        # This warning matches the simple_bus_reg warning in dtc
        if not node.unit_addr or "reg" not in node.props:
            return

        try:
            unit_addr = int(node.unit_addr.split(",", 1)[0], 16)
        except ValueError:
            # Not a plain hex unit address (e.g. "pci@1,0" uses a bus
            # specific format). Nothing to compare.
            return

        addr = reg_addr(node)
        if addr is None:
            return

        if _on_i2c_bus(node):
            addr &= ~(_I2C_TEN_BIT_ADDRESS | _I2C_OWN_SLAVE_ADDRESS)

        if addr != unit_addr:
            self._warn(
                "unit address and first address in 'reg' "
                f"(0x{addr:x}) don't match for {node.path}"
            )

    def _check_i2c_addr(self, node: DTNode) -> None:
        # This warning matches the i2c_bus_reg warning in dtc
        addr = reg_addr(node)
        if addr is None:
            return

        if addr & _I2C_TEN_BIT_ADDRESS:
            addr &= ~(_I2C_TEN_BIT_ADDRESS | _I2C_OWN_SLAVE_ADDRESS)
            if addr > 0x3FF:
                self._warn(
                    f"I2C address must be less than 10-bits, got 0x{addr:x} "
                    f"for {node.path}"
                )
            return

        addr &= ~_I2C_OWN_SLAVE_ADDRESS
        if addr > 0x7F:
            self._warn(
                f"I2C address must be less than 7-bits, got 0x{addr:x} for "
                f"{node.path}. Set I2C_TEN_BIT_ADDRESS for 10 bit addresses "
                "or fix the property"
            )

    def _warn(self, msg: str) -> None:
        on_error: Callable[[str], None]
        if self._strict:
            on_error = _err
        else:
            on_error = _LOG.warning
        on_error(msg)


#
# Public global functions
#


def load_vendor_prefixes_txt(vendor_prefixes: str) -> dict[str, str]:
    """Load a vendor-prefixes.txt file and return a dict
    representation mapping a vendor prefix to the vendor name.
    """
    vnd2vendor: dict[str, str] = {}
    with open(vendor_prefixes, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                # Comment or empty line.
                continue

            # Other lines should be in this form:
            #
            # <vnd><TAB><vendor>
            vnd_vendor = line.split("\t", 1)
            if len(vnd_vendor) != 2:
                _err(f"malformed line in {vendor_prefixes}: '{line}'")
            vnd2vendor[vnd_vendor[0]] = vnd_vendor[1]
    return vnd2vendor


def default_vendor_prefixes_txt() -> str:
    """
    Returns the path of the vendor-prefixes.txt file that ships with this
    library.
    """
    return os.path.join(os.path.dirname(__file__), "data", "vendor-prefixes.txt")


#
# Private global functions
#


def _add_violations(violations: list[Violation], new: list[Violation]) -> None:
    # Core property types are also checked in child nodes, so the same
    # violation can be found when validating a node and its parent
    for violation in new:
        if violation not in violations:
            violations.append(violation)


def _compatibles(node: DTNode) -> list[str]:
    # Returns the compatible strings of 'node'. Malformed 'compatible'
    # properties are left for the bindings to report.
    prop = node.props.get("compatible")
    if prop is None or prop.type not in (DTType.STRING, DTType.STRINGS):
        return []
    return prop.to_strings()


def _on_i2c_bus(node: DTNode) -> bool:
    return node.parent is not None and node.parent.name.split("@", 1)[0] == "i2c"


def _err(msg) -> NoReturn:
    raise CheckError(msg)


def _err_binding(msg) -> NoReturn:
    raise BindingError(msg)
