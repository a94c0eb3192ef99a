# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Schema fixups applied to bindings before nodes are validated against them.

Bindings are written in a shorthand that reads naturally for devicetree
properties but does not match the JSON-like node representation produced by
devicetree/instance.py:

- Constraints on a single string, like

      compatible:
        enum:
          - onnn,ncv6336

  are written as if the property was a plain string, but string properties
  are lists of strings in the instance. The constraints are moved below
  'items' and the list is limited to a single entry unless the binding already
  says how many entries there may be. Without a '$ref' to a core type, the
  property must also be an array, so that an empty 'compatible;' (True in the
  instance) doesn't slip through.

- Constraints on a single number ('const: 1', 'enum: [1, 2]', 'maximum: 7')
  are moved two levels down, as number properties are matrices in the
  instance.

- A list of 'items' fixes the number of entries to its length, and a
  'maxItems' without 'minItems' means exactly that many entries.

- Nodes may always carry the implicit '$nodename' and the compiler generated
  'phandle' properties, even if the binding forbids additional properties.

The fixups only transform the binding's own text. Schemas referenced via
'$ref' are used as they are.
"""

from __future__ import annotations

from typing import Any

#
# Private constants
#

# Keywords that constrain a single scalar value
_SCALAR_KEYWORDS = (
    "const",
    "enum",
    "pattern",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minLength",
    "maxLength",
    "format",
)

# Keywords that only make sense for strings
_STRING_KEYWORDS = ("pattern", "minLength", "maxLength", "format")

# Keywords that say how the property's array looks like. If any of them is
# present, the binding author took care of the array shape.
_ARRAY_KEYWORDS = ("items", "minItems", "maxItems", "contains", "additionalItems")

# Keywords whose subschemas describe the same node
_NODE_SUBSCHEMA_KEYWORDS = ("allOf", "anyOf", "oneOf")
_NODE_CONDITIONAL_KEYWORDS = ("if", "then", "else")

# Properties that every node may have
_IMPLICIT_PROPS = ("$nodename", "phandle")

#
# Public functions
#


def fixup_binding_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Destructively applies the fixups described in the module docstring to
    the binding 'schema' (the parsed YAML of a binding) and returns it.
    """
    # The devicetree meta-schemas are not JSON-Schema dialects the validator
    # knows about. Bindings are always validated with Draft 2019-09.
    schema.pop("$schema", None)

    # Annotations that the validator doesn't need
    schema.pop("maintainers", None)
    schema.pop("select", None)

    _fixup_node(schema)
    return schema


#
# Private global functions
#


def _fixup_node(schema: Any) -> None:
    # Fixes up a schema that describes a node (mapping). Recurses into child
    # node schemas.

    if not isinstance(schema, dict):
        return

    for key in ("properties", "patternProperties"):
        props = schema.get(key)
        if not isinstance(props, dict):
            continue

        for prop_name, prop_schema in props.items():
            if prop_name == "$nodename":
                continue

            if _is_node_schema(prop_schema):
                _fixup_node(prop_schema)
            else:
                _fixup_prop(prop_schema)

    for key in _NODE_SUBSCHEMA_KEYWORDS:
        for subschema in schema.get(key) or []:
            _fixup_node(subschema)

    for key in _NODE_CONDITIONAL_KEYWORDS:
        _fixup_node(schema.get(key))

    for key in ("additionalProperties", "unevaluatedProperties"):
        if isinstance(schema.get(key), dict) and _is_node_schema(schema[key]):
            _fixup_node(schema[key])

    if schema.get("additionalProperties") is False or schema.get(
        "unevaluatedProperties"
    ) is False:
        props = schema.setdefault("properties", {})
        for prop_name in _IMPLICIT_PROPS:
            props.setdefault(prop_name, True)


def _fixup_prop(schema: Any) -> None:
    # Fixes up the schema of a single property. See the module docstring.

    if not isinstance(schema, dict):
        return

    for key in _NODE_SUBSCHEMA_KEYWORDS:
        for subschema in schema.get(key) or []:
            _fixup_prop(subschema)

    _fixup_items_size(schema)

    if "type" in schema or any(key in schema for key in _ARRAY_KEYWORDS):
        return

    scalar = {key: schema.pop(key) for key in _SCALAR_KEYWORDS if key in schema}
    if not scalar:
        return

    has_ref = "$ref" in schema

    if _is_string_constraint(scalar):
        schema["items"] = scalar
        if not has_ref:
            schema["type"] = "array"
            schema["minItems"] = 1
            schema["maxItems"] = 1
        return

    # Numbers: one row with one cell
    row: dict[str, Any] = {"items": scalar}
    if not has_ref:
        row["minItems"] = 1
        row["maxItems"] = 1
        schema["type"] = "array"
        schema["minItems"] = 1
        schema["maxItems"] = 1
    schema["items"] = row


def _fixup_items_size(schema: dict[str, Any]) -> None:
    items = schema.get("items")
    if isinstance(items, list):
        schema.setdefault("minItems", len(items))
        schema.setdefault("maxItems", len(items))
    elif "maxItems" in schema and "minItems" not in schema:
        schema["minItems"] = schema["maxItems"]


def _is_string_constraint(scalar: dict[str, Any]) -> bool:
    if any(key in scalar for key in _STRING_KEYWORDS):
        return True

    values = []
    if "const" in scalar:
        values.append(scalar["const"])
    if isinstance(scalar.get("enum"), list):
        values.extend(scalar["enum"])

    return bool(values) and all(isinstance(value, str) for value in values)


def _is_node_schema(schema: Any) -> bool:
    # True if 'schema' describes a child node rather than a property
    return isinstance(schema, dict) and (
        schema.get("type") == "object"
        or "properties" in schema
        or "patternProperties" in schema
    )
