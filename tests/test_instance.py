# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

import pytest

from bindcheck import DTError, load_dts_source
from bindcheck.devicetree.instance import (
    address_cells,
    node_instance,
    reg_addr,
    reg_entries,
    size_cells,
)

# Test suite for instance.py, the conversion of nodes into the JSON-like
# representation bindings are validated against.
#
# Run it using pytest (https://docs.pytest.org/en/stable/usage.html):
#
#   $ pytest test_instance.py


def test_node_instance():
    """Test the representation of the different property types."""

    dt = load_dts_source(
        """\
/dts-v1/;

/ {
	#address-cells = <1>;
	#size-cells = <1>;

	target: target {
	};

	node@1000 {
		reg = <0x1000 0x100 0x2000 0x100>;
		empty;
		string = "foo";
		strings = "foo", "bar";
		nums = <1 2>, <3>;
		bytes = [01 02 03];
		bits = /bits/ 16 <4 5>;
		phandles = <&target 1>;
		path = &target;
		mixed = "foo", <1 2>;

		child {
			num = <7>;
		};
	};
};
"""
    )

    assert node_instance(dt.get_node("/node@1000")) == {
        "$nodename": "node@1000",
        "reg": [[0x1000, 0x100], [0x2000, 0x100]],
        "empty": True,
        "string": ["foo"],
        "strings": ["foo", "bar"],
        # dtlib doesn't keep the '< ... >' grouping
        "nums": [[1, 2, 3]],
        "bytes": [[1, 2, 3]],
        "bits": [[0, 4, 0, 5]],
        "phandles": [[1, 1]],
        "path": ["/target"],
        "mixed": [[0x66, 0x6F, 0x6F, 0, 0, 0, 0, 1, 0, 0, 0, 2]],
        "child": {
            "$nodename": "child",
            "num": [[7]],
        },
    }

    # The phandle generated for the '&target' reference
    assert node_instance(dt.get_node("/target")) == {
        "$nodename": "target",
        "phandle": [[1]],
    }

    assert node_instance(dt.root)["$nodename"] == "/"


def test_reg():
    """Test 'reg' regrouping and address extraction."""

    dt = load_dts_source(
        """\
/dts-v1/;

/ {
	default-cells {
		node@100000001 {
			reg = <0x1 0x1 0x10 0x2 0x0 0x20>;
		};
	};

	i2c {
		#address-cells = <1>;
		#size-cells = <0>;

		sensor@48 {
			reg = <0x48 0x49>;
		};
	};

	no-cells {
		#address-cells = <0>;
		#size-cells = <0>;

		node {
			reg = <1 2>;
		};
	};

	short {
		#address-cells = <1>;
		#size-cells = <1>;

		node@10 {
			reg = <0x10 0x4 0x20>;
		};

		no-reg {
		};
	};
};
"""
    )

    default_cells = dt.get_node("/default-cells")
    assert address_cells(default_cells) == 2
    assert size_cells(default_cells) == 1

    node = dt.get_node("/default-cells/node@100000001")
    assert reg_entries(node) == [[0x1, 0x1, 0x10], [0x2, 0x0, 0x20]]
    assert reg_addr(node) == 0x100000001

    sensor = dt.get_node("/i2c/sensor@48")
    assert reg_entries(sensor) == [[0x48], [0x49]]
    assert reg_addr(sensor) == 0x48

    assert reg_entries(dt.get_node("/no-cells/node")) == [[1, 2]]

    node = dt.get_node("/short/node@10")
    assert reg_entries(node) == [[0x10, 0x4], [0x20]]
    assert node_instance(node)["reg"] == [[0x10, 0x4], [0x20]]

    assert reg_entries(dt.get_node("/short/no-reg")) == []
    assert reg_addr(dt.get_node("/short/no-reg")) is None


def test_reg_without_cells():
    """Test 'reg' properties that don't hold cells."""

    dt = load_dts_source(
        """\
/dts-v1/;

/ {
	#address-cells = <1>;
	#size-cells = <0>;

	empty@1 {
		reg;
	};

	string@1 {
		reg = "abc";
	};

	no-entries@1 {
		reg = <>;
	};
};
"""
    )

    # These are left for the core 'reg' type to reject, instead of being
    # turned into an empty list of entries
    node = dt.get_node("/empty@1")
    assert reg_entries(node) == []
    assert reg_addr(node) is None
    assert node_instance(node)["reg"] is True

    node = dt.get_node("/string@1")
    assert reg_entries(node) == []
    assert node_instance(node)["reg"] == ["abc"]

    assert node_instance(dt.get_node("/no-entries@1"))["reg"] == []


def test_bad_cells():
    """Test a '#size-cells' that isn't a single cell."""

    dt = load_dts_source(
        """\
/dts-v1/;

/ {
	bus {
		#address-cells = <1>;
		#size-cells = "one";

		node@1 {
			reg = <1 2>;
		};
	};
};
""",
        "bad-cells.dts",
    )

    with pytest.raises(DTError) as e:
        reg_entries(dt.get_node("/bus/node@1"))
    assert "#size-cells" in str(e.value)
