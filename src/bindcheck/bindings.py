# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Bindings are YAML files that describe devicetree nodes and their properties in
the JSON-Schema based format used by the Linux kernel
(Documentation/devicetree/bindings). Nodes are mapped to bindings via their
'compatible' property: a binding checks every node that has one of the
compatible strings listed under 'properties: compatible:' in the binding.

A typical binding looks like this:

    $id: http://devicetree.org/schemas/regulator/onnn,ncv6336.yaml#
    $schema: http://devicetree.org/meta-schemas/core.yaml#

    title: Onsemi NCV6336 Buck converter

    maintainers:
      - Fabien Parent <fabien.parent@linaro.org>

    properties:
      $nodename:
        pattern: "regulator@[0-9a-f]{2}"
      compatible:
        enum:
          - onnn,ncv6336
      reg:
        maxItems: 1

    required:
      - compatible
      - reg

    additionalProperties: false

    examples:
      - |
        ...

Bindings are static: they are loaded, compared against candidate nodes and
discarded. Nothing in this library modifies a Binding after construction.
"""

from __future__ import annotations

from collections import OrderedDict
import logging
import os
import re

from copy import deepcopy
from typing import Any, Iterable, NoReturn, Optional, Union

from jsonschema import Draft201909Validator
from jsonschema.exceptions import SchemaError

from bindcheck.error import BindingError
from bindcheck.fixups import fixup_binding_schema
from bindcheck.yamlutil import _load_yaml

#
# Private constants
#

_LOG = logging.getLogger(__name__)

_HERE = os.path.dirname(__file__)

# Top-level keys that may appear in a binding. Everything else is most likely a
# typo.
_TOP_LEVEL_KEYS = {
    "$id",
    "$schema",
    "$ref",
    "$defs",
    "definitions",
    "title",
    "description",
    "maintainers",
    "select",
    "properties",
    "patternProperties",
    "required",
    "additionalProperties",
    "unevaluatedProperties",
    "dependencies",
    "dependentRequired",
    "dependentSchemas",
    "allOf",
    "anyOf",
    "oneOf",
    "if",
    "then",
    "else",
    "deprecated",
    "examples",
}

# Keys from other binding formats, with a hint on what to use instead
_LEGACY_ERRORS = {
    "compatible": "use 'properties: compatible: ...' instead",
    "include": "use '$ref' or 'allOf: - $ref: ...' instead",
    "child-binding": "use 'patternProperties' with 'type: object' instead",
    "bus": "describe the bus in the controller's binding instead",
    "on-bus": "describe the bus in the controller's binding instead",
}

# Schema keywords whose values may contain compatible strings
_COMPATIBLE_KEYWORDS = ("const", "enum", "items", "oneOf", "anyOf", "allOf", "contains")

#
# Public classes
#


class Binding:
    """
    Represents a parsed binding.

    These attributes are available on Binding objects:

    path:
      The path to the file defining the binding.

    yaml_source:
      The binding as parsed from YAML (plain Python lists, dicts, etc.).

    schema:
      The JSON schema that nodes are validated against. This is 'yaml_source'
      with the fixups from fixups.py applied. See fixup_binding_schema().

    Also see property docstrings.
    """

    def __init__(self, path: str, yaml_source: Any = None):
        """
        Binding constructor.

        path:
          Path to binding YAML file.

        yaml_source:
          Optional raw YAML source for the binding, as returned by PyYAML. If
          not given, 'path' will be opened and read.

        Raises BindingError if the file can't be parsed or if the binding
        fails the sanity checks.
        """
        if path is None:
            _err("you must provide a 'path'")

        self.path: str = path

        if yaml_source is None:
            yaml_source = _load_binding_file(path)

        if not isinstance(yaml_source, dict):
            _err(f"{path}: invalid contents, expected a mapping")

        self.yaml_source: dict[str, Any] = yaml_source

        # Make sure this is a well defined object.
        self._check()

        self.schema: dict[str, Any] = fixup_binding_schema(
            deepcopy(self.yaml_source)
        )

        try:
            Draft201909Validator.check_schema(self.schema)
        except SchemaError as e:
            _err(
                f"{self.path}: not a valid schema at "
                f"'{'/'.join(str(p) for p in e.absolute_path) or '/'}': {e.message}"
            )

    def __repr__(self) -> str:
        compats = ", ".join(self.compatibles)
        return f"<Binding {os.path.basename(self.path)} for '{compats}'>"

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if not isinstance(other, Binding):
            return False
        return self.id == other.id

    @property
    def id(self) -> str:
        "The '$id' URI of the binding."
        return self.yaml_source["$id"]

    @property
    def title(self) -> str:
        "The one line title of the binding."
        return self.yaml_source["title"]

    @property
    def description(self) -> Optional[str]:
        "The free-form description of the binding, or None."
        return self.yaml_source.get("description")

    @property
    def maintainers(self) -> list[str]:
        "The list of maintainers ('Name <email>' strings)."
        return self.yaml_source["maintainers"]

    @property
    def properties(self) -> OrderedDict[str, Any]:
        """
        The property schemas declared in 'properties:', by property name. Does
        not include the '$nodename' pseudo property.
        """
        return OrderedDict(
            (name, prop)
            for name, prop in (self.yaml_source.get("properties") or {}).items()
            if name != "$nodename"
        )

    @property
    def pattern_properties(self) -> list[re.Pattern]:
        "Compiled regular expressions for the 'patternProperties:' keys."
        return [re.compile(key) for key in self.yaml_source.get("patternProperties") or {}]

    @property
    def required(self) -> list[str]:
        "The names of the required properties."
        return self.yaml_source.get("required") or []

    @property
    def additional_properties(self) -> Union[bool, dict]:
        """
        The 'additionalProperties' setting. True (the JSON schema default) if
        the binding doesn't set it.
        """
        return self.yaml_source.get("additionalProperties", True)

    @property
    def unevaluated_properties(self) -> Union[bool, dict]:
        """
        The 'unevaluatedProperties' setting. True (the JSON schema default) if
        the binding doesn't set it.
        """
        return self.yaml_source.get("unevaluatedProperties", True)

    @property
    def nodename_pattern(self) -> Optional[str]:
        """
        The regular expression node names must match, as given by
        'properties: $nodename: pattern:', or None if there is none.
        """
        nodename = (self.yaml_source.get("properties") or {}).get("$nodename")
        if not isinstance(nodename, dict):
            return None
        return nodename.get("pattern")

    @property
    def compatibles(self) -> list[str]:
        """
        The compatible strings of the nodes this binding applies to, collected
        from the 'const', 'enum', 'items', 'oneOf', 'anyOf', 'allOf' and
        'contains' keywords of 'properties: compatible:'. Fallback compatibles
        listed after a more specific one are included.
        """
        if not hasattr(self, "_compatibles"):
            self._compatibles: list[str] = []
            compat_schema = (self.yaml_source.get("properties") or {}).get("compatible")
            _collect_compatibles(compat_schema, self._compatibles)
        return self._compatibles

    @property
    def select(self) -> Union[None, bool, dict]:
        """
        The 'select:' setting, or None if the binding doesn't have one. If
        None, nodes are selected by their compatible strings.
        """
        return self.yaml_source.get("select")

    @property
    def examples(self) -> list[str]:
        "The devicetree source examples given in the binding."
        return self.yaml_source.get("examples") or []

    @property
    def deprecated(self) -> bool:
        "True if the whole binding is deprecated; False otherwise."
        return self.yaml_source.get("deprecated", False)

    def _check(self) -> None:
        # Does sanity checking on the binding. This is the equivalent of the
        # dt-schema's meta-schema check for the parts that matter
        # here.

        yaml_source = self.yaml_source

        for key in yaml_source:
            if key in _LEGACY_ERRORS:
                _err(f"legacy '{key}:' in {self.path}, {_LEGACY_ERRORS[key]}")
            if key not in _TOP_LEVEL_KEYS:
                _err(
                    f"unknown key '{key}' in {self.path}, expected one of "
                    + ", ".join(sorted(_TOP_LEVEL_KEYS))
                )

        for key in ("$id", "$schema", "title", "maintainers"):
            if key not in yaml_source:
                _err(f"missing '{key}' in {self.path}")

        if not isinstance(self.id, str) or not self.id.endswith("#"):
            _err(f"malformed '$id: {self.id}' in {self.path}, expected a URI ending in '#'")

        expected_fname = os.path.basename(self.path)
        id_fname = self.id.rstrip("#").rsplit("/", 1)[-1]
        if expected_fname.endswith((".yaml", ".yml")) and id_fname != expected_fname:
            _LOG.warning(
                "'$id: %s' in %s doesn't match the file name '%s'",
                self.id,
                self.path,
                expected_fname,
            )

        if not isinstance(self.title, str) or not self.title:
            _err(f"malformed or empty 'title' in {self.path}")

        if "description" in yaml_source and (
            not isinstance(self.description, str) or not self.description
        ):
            _err(f"malformed or empty 'description' in {self.path}")

        maintainers = yaml_source["maintainers"]
        if (
            not isinstance(maintainers, list)
            or not maintainers
            or not all(isinstance(m, str) for m in maintainers)
        ):
            _err(f"'maintainers' in {self.path} should be a non-empty list of strings")

        props = yaml_source.get("properties")
        if props is None and "$ref" not in yaml_source and "allOf" not in yaml_source:
            _err(f"missing 'properties' in {self.path}")
        if props is not None and not isinstance(props, dict):
            _err(f"'properties' in {self.path} should be a mapping")

        for prop_name, prop_schema in (props or {}).items():
            if not isinstance(prop_schema, (dict, bool)):
                _err(
                    f"'properties: {prop_name}' in {self.path} should be a "
                    "schema (mapping) or a boolean"
                )

        pattern_props = yaml_source.get("patternProperties") or {}
        if not isinstance(pattern_props, dict):
            _err(f"'patternProperties' in {self.path} should be a mapping")
        for pattern in pattern_props:
            _check_regex(pattern, f"'patternProperties' key in {self.path}")

        self._check_nodename()
        self._check_required()

        for key in ("additionalProperties", "unevaluatedProperties"):
            if key in yaml_source and not isinstance(yaml_source[key], (bool, dict)):
                _err(f"'{key}' in {self.path} should be true, false or a schema")

        select = yaml_source.get("select")
        if select is not None and not isinstance(select, (bool, dict)):
            _err(f"'select' in {self.path} should be true, false or a schema")

        if select is None and not self.compatibles and "$nodename" not in (props or {}):
            _LOG.debug(
                "binding %s has no compatible strings and no 'select', it "
                "will only be used when referenced by other bindings",
                self.path,
            )

        examples = yaml_source.get("examples")
        if examples is not None and (
            not isinstance(examples, list)
            or not all(isinstance(example, str) for example in examples)
        ):
            _err(f"'examples' in {self.path} should be a list of strings")

    def _check_nodename(self) -> None:
        nodename = (self.yaml_source.get("properties") or {}).get("$nodename")
        if nodename is None:
            return

        if not isinstance(nodename, dict) or not (
            {"pattern", "const", "enum"} & nodename.keys()
        ):
            _err(
                f"'$nodename' in {self.path} should have a 'pattern', 'const' "
                "or 'enum'"
            )

        if "pattern" in nodename:
            _check_regex(nodename["pattern"], f"'$nodename' pattern in {self.path}")

    def _check_required(self) -> None:
        # The required properties must be a subset of the declared ones,
        # unless they might be declared by a referenced schema.

        required = self.yaml_source.get("required")
        if required is None:
            return

        if not isinstance(required, list) or not all(
            isinstance(name, str) for name in required
        ):
            _err(f"'required' in {self.path} should be a list of property names")

        if len(set(required)) != len(required):
            _err(f"duplicate entries in 'required' in {self.path}")

        if "$ref" in self.yaml_source or "allOf" in self.yaml_source:
            return

        declared = self.yaml_source.get("properties") or {}
        for name in required:
            if name in declared:
                continue
            if any(pattern.search(name) for pattern in self.pattern_properties):
                continue
            _err(
                f"required property '{name}' in {self.path} is not declared "
                "in 'properties'"
            )


#
# Public global functions
#


def default_bindings_dir() -> str:
    """
    Returns the directory with the bindings that ship with this library.
    """
    return os.path.join(_HERE, "data", "bindings")


def bindings_from_paths(
    yaml_paths: Iterable[str], ignore_errors: bool = False
) -> list[Binding]:
    """
    Get a list of Binding objects from the yaml files 'yaml_paths'.

    YAML files without an '$id' (e.g. shared property definitions in other
    formats) are skipped. It is an error for two bindings to have the same
    '$id'.

    If 'ignore_errors' is True, YAML files that cause a BindingError when
    loaded are ignored. (No other exception types are silenced.)
    """
    ret: list[Binding] = []
    id2path: dict[str, str] = {}

    for path in yaml_paths:
        try:
            yaml_source = _load_binding_file(path)

            if not isinstance(yaml_source, dict) or "$id" not in yaml_source:
                _LOG.debug("skipping '%s': not a binding", path)
                continue

            binding = Binding(path, yaml_source)
        except BindingError:
            if ignore_errors:
                _LOG.debug("ignoring broken binding '%s'", path, exc_info=True)
                continue
            raise

        if binding.id in id2path:
            _err(
                f"'$id: {binding.id}' in {path} is already used by "
                f"{id2path[binding.id]}"
            )
        id2path[binding.id] = path
        ret.append(binding)

    return ret


def bindings_from_dirs(
    bindings_dirs: Union[str, list[str]], ignore_errors: bool = False
) -> list[Binding]:
    """
    Get a list of Binding objects from all .yaml/.yml files found recursively
    in 'bindings_dirs'. See bindings_from_paths() for 'ignore_errors'.
    """
    if isinstance(bindings_dirs, str):
        bindings_dirs = [bindings_dirs]

    return bindings_from_paths(_collect_bindings_paths(bindings_dirs), ignore_errors)


#
# Private global functions
#


def _load_binding_file(path: str) -> Any:
    # Returns the parsed YAML of the binding file 'path'
    try:
        with open(path, encoding="utf-8") as f:
            source = f.read()
    except OSError as e:
        _err(f"could not read binding '{path}': {e}")
    except UnicodeDecodeError as e:
        _err(f"'{path}' isn't valid UTF-8: {e}")

    return _load_yaml(source, path)


def _collect_bindings_paths(bindings_dirs: list[str]) -> list[str]:
    # Returns a sorted list with the paths to all bindings (.yaml files) in
    # 'bindings_dirs'
    bindings_paths = []

    for bindings_dir in bindings_dirs:
        if not os.path.isdir(bindings_dir):
            _err(f"bindings directory '{bindings_dir}' does not exist")

        for root, _, filenames in os.walk(bindings_dir):
            for filename in filenames:
                if filename.endswith(".yaml") or filename.endswith(".yml"):
                    bindings_paths.append(os.path.join(root, filename))

    return sorted(bindings_paths)


def _collect_compatibles(schema: Any, compatibles: list[str]) -> None:
    # Recursively collects the string values of 'const' and 'enum' in
    # 'schema' into 'compatibles', following the keywords in
    # _COMPATIBLE_KEYWORDS.

    if isinstance(schema, list):
        for subschema in schema:
            _collect_compatibles(subschema, compatibles)
        return

    if not isinstance(schema, dict):
        return

    values: list[Any] = []
    if "const" in schema:
        values.append(schema["const"])
    if isinstance(schema.get("enum"), list):
        values.extend(schema["enum"])

    for value in values:
        if isinstance(value, str) and value not in compatibles:
            compatibles.append(value)

    for keyword in _COMPATIBLE_KEYWORDS:
        if keyword in ("const", "enum"):
            continue
        if keyword in schema:
            _collect_compatibles(schema[keyword], compatibles)


def _check_regex(pattern: Any, what: str) -> None:
    if not isinstance(pattern, str):
        _err(f"{what} should be a string, not {type(pattern).__name__}")
    try:
        re.compile(pattern)
    except re.error as e:
        _err(f"{what} is not a valid regular expression: '{pattern}': {e}")


def _err(msg) -> NoReturn:
    raise BindingError(msg)
