# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Validates devicetree nodes against bindings.

Validation uses standard JSON Schema (Draft 2019-09) semantics as implemented
by the 'jsonschema' package. The node is converted to its JSON-like instance
(see devicetree/instance.py) and checked against the binding's fixed up
schema (see fixups.py). Every violated constraint is reported as a Violation.
A node that violates its binding is not an error from the library's point of
view: validate_node() only raises for broken inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import itertools
import logging
import os
import re

from typing import Any, Iterable, NoReturn, Optional

from devicetree.dtlib import Node as DTNode
from jsonschema import Draft201909Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT201909

from bindcheck.bindings import Binding
from bindcheck.devicetree.instance import node_instance
from bindcheck.error import BindingError
from bindcheck.yamlutil import _load_yaml

#
# Private constants
#

_LOG = logging.getLogger(__name__)

_SCHEMAS_DIR = os.path.join(os.path.dirname(__file__), "data", "schemas")

# Schema with the types of the standard properties, checked for every node
_CORE_SCHEMA_ID = "http://devicetree.org/schemas/dt-core.yaml"

# Matches the list of names in jsonschema's "('a', 'b' were unexpected)"
_UNEXPECTED_RE = re.compile(r"\((.*) (?:was|were) unexpected\)")

#
# Public classes
#


class ViolationKind(Enum):
    """
    The kinds of binding violations a node can have.
    """

    MISSING_REQUIRED = "missing required property"
    UNKNOWN_PROPERTY = "property not allowed"
    NOT_IN_ENUM = "value not allowed"
    CARDINALITY = "wrong number of items"
    NODENAME_MISMATCH = "node name does not match"
    TYPE = "wrong type"
    OTHER = "constraint violated"


@dataclass(frozen=True)
class Violation:
    """
    A single binding constraint violated by a devicetree node.

    node_path:
      The path of the offending node, e.g. "/i2c/regulator@1c". Violations in
      child nodes described by the binding have the child node's path.

    prop:
      The name of the offending property, or None if the violation concerns
      the node as a whole. For node name mismatches, this is "$nodename".

    kind:
      The kind of violation, as a ViolationKind.

    message:
      A human readable description of the violation.

    binding_path:
      The path of the binding that was violated.

    dts_path:
      The file the node was parsed from.
    """

    node_path: str
    prop: Optional[str]
    kind: ViolationKind
    message: str
    binding_path: str
    dts_path: str = "<string>"

    def __str__(self) -> str:
        prop = f"{self.prop}: " if self.prop and self.prop != "$nodename" else ""
        return (
            f"{self.dts_path}: {self.node_path}: {prop}{self.message}\n"
            f"\tfrom schema: {self.binding_path}"
        )


@dataclass
class ValidationResult:
    """
    The result of validating a node against a binding.

    violations:
      All Violations found, in the order they were found.

    valid:
      True if there are no violations.
    """

    violations: list[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.valid


class BindingValidator:
    """
    Validates devicetree nodes against a set of bindings. Bindings may refer
    to each other and to the core property types
    (/schemas/types.yaml#/definitions/...) with '$ref'.
    """

    def __init__(self, bindings: Iterable[Binding]):
        """
        BindingValidator constructor.

        bindings:
          The bindings that nodes will be validated against and that can be
          referenced from other bindings.
        """
        self.bindings: list[Binding] = list(bindings)

        resources: list[tuple[str, Resource]] = [
            (binding.id.rstrip("#"), DRAFT201909.create_resource(binding.schema))
            for binding in self.bindings
        ]
        resources.extend(_core_schema_resources())
        self._registry: Registry = Registry().with_resources(resources)
        self._core_validator = Draft201909Validator(
            self._registry.contents(_CORE_SCHEMA_ID), registry=self._registry
        )

        self._validators: dict[str, Draft201909Validator] = {}

    def validate_node(self, binding: Binding, node: DTNode) -> ValidationResult:
        """
        Validates 'node' (a dtlib.Node) against 'binding' and returns a
        ValidationResult. Child nodes of 'node' are validated as far as the
        binding describes them. The types of standard properties like
        'compatible' and 'reg' are checked for all nodes, see
        data/schemas/dt-core.yaml.

        Raises BindingError if the binding references a schema that can't be
        found.
        """
        instance = node_instance(node)
        result = ValidationResult()

        try:
            errors = sorted(
                itertools.chain(
                    self._core_validator.iter_errors(instance),
                    self._validator(binding).iter_errors(instance),
                ),
                key=lambda e: [str(p) for p in e.absolute_path],
            )
        except Unresolvable as e:
            _err(f"{binding.path}: unresolvable reference: {e}")

        for error in errors:
            for violation in _violations_from_error(error, binding, node, instance):
                if violation not in result.violations:
                    result.violations.append(violation)

        _LOG.debug(
            "%s: validated against %s, %d violation(s)",
            node.path,
            binding.path,
            len(result.violations),
        )
        return result

    def _validator(self, binding: Binding) -> Draft201909Validator:
        # Returns a (cached) jsonschema validator for 'binding'
        if binding.id not in self._validators:
            self._validators[binding.id] = Draft201909Validator(
                binding.schema, registry=self._registry
            )
        return self._validators[binding.id]


#
# Public global functions
#


def validate_node(binding: Binding, node: DTNode) -> ValidationResult:
    """
    Validates 'node' against 'binding'. Convenience wrapper for
    BindingValidator([binding]).validate_node(binding, node).
    """
    return BindingValidator([binding]).validate_node(binding, node)


#
# Private global functions
#


def _core_schema_resources() -> list[tuple[str, Resource]]:
    # Returns the (URI, resource) pairs for the schemas that ship with this
    # library, like types.yaml.
    resources = []
    for filename in sorted(os.listdir(_SCHEMAS_DIR)):
        if not filename.endswith(".yaml"):
            continue
        path = os.path.join(_SCHEMAS_DIR, filename)
        with open(path, encoding="utf-8") as f:
            schema = _load_yaml(f, path)
        schema.pop("$schema", None)
        resources.append((schema["$id"].rstrip("#"), DRAFT201909.create_resource(schema)))
    return resources


def _violations_from_error(
    error: ValidationError, binding: Binding, node: DTNode, instance: dict[str, Any]
) -> list[Violation]:
    # Converts a jsonschema ValidationError into Violations. Most errors map
    # to exactly one Violation. Errors about several properties at once
    # (missing or additional properties) map to one Violation per property.

    node_path, prop, sub_instance = _locate(node, instance, list(error.absolute_path))

    def violation(kind: ViolationKind, message: str, prop: Optional[str]) -> Violation:
        return Violation(
            node_path=node_path,
            prop=prop,
            kind=kind,
            message=message,
            binding_path=binding.path,
            dts_path=node.dt.filename,
        )

    keyword = error.validator

    if keyword == "required":
        return [
            violation(
                ViolationKind.MISSING_REQUIRED,
                f"'{name}' is a required property",
                name,
            )
            for name in error.validator_value
            if isinstance(sub_instance, dict) and name not in sub_instance
        ]

    if keyword in ("additionalProperties", "unevaluatedProperties"):
        return [
            violation(
                ViolationKind.UNKNOWN_PROPERTY,
                f"'{name}' does not match any of the regexes or properties "
                "declared in the binding",
                name,
            )
            for name in _extra_props(error, sub_instance)
        ]

    if prop == "$nodename":
        return [
            violation(
                ViolationKind.NODENAME_MISMATCH,
                f"node name '{error.instance}' does not match "
                f"{_describe(keyword, error.validator_value)}",
                prop,
            )
        ]

    if keyword in ("enum", "const"):
        kind = ViolationKind.NOT_IN_ENUM
    elif keyword in ("minItems", "maxItems"):
        kind = ViolationKind.CARDINALITY
    elif keyword == "type":
        kind = ViolationKind.TYPE
    else:
        kind = ViolationKind.OTHER

    return [violation(kind, error.message, prop)]


def _locate(
    node: DTNode, instance: dict[str, Any], path: list[Any]
) -> tuple[str, Optional[str], Any]:
    # Walks 'path' (a jsonschema absolute_path) into 'instance' and returns a
    # tuple with the path of the deepest node on it, the name of the property
    # on that node that the path points into (or None), and the value at the
    # deepest node or property.

    node_path = node.path
    sub_instance: Any = instance

    for elem in path:
        if not isinstance(sub_instance, dict) or elem not in sub_instance:
            break

        child = sub_instance[elem]
        if isinstance(child, dict):
            node_path = node_path.rstrip("/") + "/" + elem
            sub_instance = child
            continue

        return node_path, elem, child

    return node_path, None, sub_instance


def _extra_props(error: ValidationError, instance: Any) -> list[str]:
    # Returns the properties in 'instance' that the schema of 'error' neither
    # declares in 'properties' nor matches with a 'patternProperties' regex.
    #
    # For 'unevaluatedProperties', properties may also be declared in
    # subschemas, so the names reported by jsonschema are used instead.

    if error.validator == "unevaluatedProperties":
        unexpected = _UNEXPECTED_RE.search(error.message)
        if unexpected:
            return re.findall(r"'([^']*)'", unexpected.group(1))

    schema = error.schema
    if not isinstance(schema, dict) or not isinstance(instance, dict):
        return []

    declared = schema.get("properties") or {}
    patterns = [re.compile(key) for key in schema.get("patternProperties") or {}]

    return [
        name
        for name in instance
        if name not in declared and not any(p.search(name) for p in patterns)
    ]


def _describe(keyword: str, value: Any) -> str:
    if keyword == "pattern":
        return f"pattern '{value}'"
    if keyword == "const":
        return f"'{value}'"
    if keyword == "enum":
        return "any of " + ", ".join(f"'{v}'" for v in value)
    return f"'{keyword}: {value}'"


def _err(msg) -> NoReturn:
    raise BindingError(msg)
