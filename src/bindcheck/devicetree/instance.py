# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Converts dtlib nodes into the JSON-like representation that bindings are
validated against.

The representation follows the one used by dt-schema, so that bindings
written for it work unchanged:

- '$nodename' is the full node name, e.g. "regulator@1c".
- Properties without a value ('foo;') become True.
- String properties become lists of strings. Path references ('foo = &bar;')
  become the path of the referenced node.
- Cell properties become matrices. dtlib doesn't keep the '< ... >' grouping,
  so all cells end up in a single row, like in dt-schema's view of a compiled
  devicetree. 'reg' is regrouped by the parent's '#address-cells' and
  '#size-cells', so that each row is exactly one register block.
- Byte strings become a matrix with a single row of bytes. So do values that
  mix strings and cells or use '/bits/', which dtlib types as
  Type.COMPOUND.
- Child nodes become nested mappings, keyed by node name.
"""

from __future__ import annotations

import logging

from typing import Any, Optional, Union

from devicetree.dtlib import (
    DTError as DTLibError,
    Node as DTNode,
    Property as DTProperty,
    Type as DTType,
    to_nums as dt_to_nums,
)

from bindcheck.error import DTError

#
# Private constants
#

_LOG = logging.getLogger(__name__)

# Cell counts assumed by the devicetree specification when a parent doesn't
# set '#address-cells' or '#size-cells'
_DEFAULT_ADDRESS_CELLS = 2
_DEFAULT_SIZE_CELLS = 1

_CELL_TYPES = (DTType.NUM, DTType.NUMS)
_PHANDLE_TYPES = (DTType.PHANDLE, DTType.PHANDLES, DTType.PHANDLES_AND_NUMS)

_InstanceValType = Union[bool, list[str], list[list[int]], dict]

#
# Public functions
#


def node_instance(node: DTNode) -> dict[str, Any]:
    """
    Returns the JSON-like instance for the devicetree node 'node', including
    all of its child nodes.
    """
    instance: dict[str, Any] = {"$nodename": node.name}

    for name, prop in node.props.items():
        instance[name] = _prop_instance(prop)

    for name, child in node.nodes.items():
        instance[name] = node_instance(child)

    return instance


def address_cells(node: DTNode) -> int:
    """
    Returns the '#address-cells' value that applies to the children of
    'node'.
    """
    return _cells(node, "#address-cells", _DEFAULT_ADDRESS_CELLS)


def size_cells(node: DTNode) -> int:
    """
    Returns the '#size-cells' value that applies to the children of 'node'.
    """
    return _cells(node, "#size-cells", _DEFAULT_SIZE_CELLS)


def reg_entries(node: DTNode) -> list[list[int]]:
    """
    Returns the 'reg' property of 'node' split into (address cells + size
    cells) sized entries, according to the cell counts of the parent node.
    Returns an empty list if there is no 'reg' property or if it doesn't
    hold cells.

    Trailing cells that don't fill a whole entry are returned as a short last
    entry, which makes the mismatch visible to 'minItems'/'items' checks.
    """
    prop = node.props.get("reg")
    if prop is None or node.parent is None or prop.type not in _CELL_TYPES:
        return []

    cells = prop.to_nums()
    entry_len = address_cells(node.parent) + size_cells(node.parent)
    if entry_len == 0:
        _LOG.debug(
            "%s: parent has '#address-cells = <0>' and '#size-cells = <0>'",
            node.path,
        )
        return [cells]

    return [cells[i : i + entry_len] for i in range(0, len(cells), entry_len)]


def reg_addr(node: DTNode) -> Optional[int]:
    """
    Returns the address of the first 'reg' entry of 'node', combining
    multi-cell addresses, or None if the node has no usable 'reg'.
    """
    entries = reg_entries(node)
    if not entries or node.parent is None:
        return None

    n_addr_cells = address_cells(node.parent)
    addr = 0
    for cell in entries[0][:n_addr_cells]:
        addr = (addr << 32) | cell
    return addr


#
# Private global functions
#


def _prop_instance(prop: DTProperty) -> _InstanceValType:
    # Converts a single property to its instance representation

    prop_type = prop.type

    if prop_type == DTType.EMPTY:
        return True

    if prop_type in _CELL_TYPES:
        if prop.name == "reg":
            return reg_entries(prop.node)
        return [prop.to_nums()]

    if prop_type in (DTType.STRING, DTType.STRINGS):
        return prop.to_strings()

    if prop_type == DTType.PATH:
        return [prop.to_path().path]

    if prop_type in _PHANDLE_TYPES:
        return [dt_to_nums(prop.value)]

    # Type.BYTES and Type.COMPOUND
    return [list(prop.value)]


def _cells(node: DTNode, name: str, default: int) -> int:
    if name not in node.props:
        return default

    try:
        return node.props[name].to_num()
    except DTLibError as e:
        raise DTError(e) from e
