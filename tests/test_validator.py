# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

import os
import pytest

from bindcheck import (
    Binding,
    BindingError,
    BindingValidator,
    Violation,
    ViolationKind,
    default_bindings_dir,
    load_dts_source,
    validate_node,
    wrap_example,
)

# Test suite for validator.py.
#
# Run it using pytest (https://docs.pytest.org/en/stable/usage.html):
#
#   $ pytest test_validator.py
#
# Nodes are written the way binding examples are, below an 'i2c' node with
# '#address-cells = <1>' and '#size-cells = <0>', see i2c_node(). The example
# wrapper puts the 'i2c' node at '/example-0/i2c'.

HERE = os.path.dirname(__file__)

NCV6336 = Binding(
    os.path.join(default_bindings_dir(), "regulator", "onnn,ncv6336.yaml")
)
SENSOR = Binding(os.path.join(HERE, "test-bindings", "vnd,sensor.yaml"))


def i2c_node(body, name="regulator@1c"):
    # Returns the node 'name' with the properties 'body' on an I2C bus

    dt = load_dts_source(
        wrap_example(
            f"""\
i2c {{
    #address-cells = <1>;
    #size-cells = <0>;

    {name} {{
        {body}
    }};
}};
"""
        )
    )
    return dt.get_node(f"/example-0/i2c/{name}")


def kinds(result):
    return [(v.prop, v.kind) for v in result.violations]


def test_valid():
    """Test nodes that satisfy the NCV6336 binding."""

    result = validate_node(
        NCV6336,
        i2c_node('compatible = "onnn,ncv6336";\n        reg = <0x1c>;'),
    )
    assert result.valid
    assert result
    assert result.violations == []

    # The compiler generated 'phandle' is always allowed
    dt = load_dts_source(
        wrap_example(
            """\
i2c {
    #address-cells = <1>;
    #size-cells = <0>;

    vdd: regulator@1c {
        compatible = "onnn,ncv6336";
        reg = <0x1c>;
    };
};

consumer {
    cpu-supply = <&vdd>;
};
"""
        )
    )
    node = dt.get_node("/example-0/i2c/regulator@1c")
    assert "phandle" in node.props
    assert validate_node(NCV6336, node).valid


def test_unknown_property():
    """Test properties that are not declared in the binding."""

    result = validate_node(
        NCV6336,
        i2c_node(
            'compatible = "onnn,ncv6336";\n'
            "        reg = <0x1c>;\n"
            "        voltage-min-microvolt = <900000>;"
        ),
    )

    assert not result.valid
    assert kinds(result) == [
        ("voltage-min-microvolt", ViolationKind.UNKNOWN_PROPERTY)
    ]

    violation = result.violations[0]
    assert violation.node_path == "/example-0/i2c/regulator@1c"
    assert violation.binding_path == NCV6336.path
    assert violation.message == (
        "'voltage-min-microvolt' does not match any of the regexes or "
        "properties declared in the binding"
    )

    # Only '$nodename' and 'phandle' are implicit. Everything else, including
    # 'status', must be declared.
    result = validate_node(
        NCV6336,
        i2c_node(
            'compatible = "onnn,ncv6336";\n'
            "        reg = <0x1c>;\n"
            '        status = "okay";'
        ),
    )
    assert kinds(result) == [("status", ViolationKind.UNKNOWN_PROPERTY)]


def test_not_in_enum():
    """Test compatible strings the binding doesn't list."""

    result = validate_node(
        NCV6336,
        i2c_node('compatible = "onnn,other";\n        reg = <0x1c>;'),
    )
    assert kinds(result) == [("compatible", ViolationKind.NOT_IN_ENUM)]

    # More than one compatible string is both too many and has a value that
    # isn't allowed
    result = validate_node(
        NCV6336,
        i2c_node(
            'compatible = "onnn,ncv6336", "onnn,other";\n        reg = <0x1c>;'
        ),
    )
    assert sorted(kind.name for _, kind in kinds(result)) == [
        "CARDINALITY",
        "NOT_IN_ENUM",
    ]
    assert all(violation.prop == "compatible" for violation in result.violations)


def test_missing_required():
    """Test missing 'compatible' and 'reg'."""

    result = validate_node(NCV6336, i2c_node('compatible = "onnn,ncv6336";'))
    assert kinds(result) == [("reg", ViolationKind.MISSING_REQUIRED)]
    assert result.violations[0].message == "'reg' is a required property"

    result = validate_node(NCV6336, i2c_node("reg = <0x1c>;"))
    assert kinds(result) == [("compatible", ViolationKind.MISSING_REQUIRED)]

    result = validate_node(NCV6336, i2c_node(""))
    assert kinds(result) == [
        ("compatible", ViolationKind.MISSING_REQUIRED),
        ("reg", ViolationKind.MISSING_REQUIRED),
    ]


def test_nodename():
    """Test node names that don't match the '$nodename' pattern."""

    result = validate_node(
        NCV6336,
        i2c_node('compatible = "onnn,ncv6336";\n        reg = <0x1c>;', "ldo@1c"),
    )
    assert kinds(result) == [("$nodename", ViolationKind.NODENAME_MISMATCH)]
    assert result.violations[0].node_path == "/example-0/i2c/ldo@1c"
    assert result.violations[0].message == (
        "node name 'ldo@1c' does not match pattern 'regulator@[0-9a-f]{2}'"
    )

    # The pattern isn't anchored, as in JSON Schema
    result = validate_node(
        NCV6336,
        i2c_node(
            'compatible = "onnn,ncv6336";\n        reg = <0x1c>;', "vdd-regulator@1c"
        ),
    )
    assert result.valid


def test_reg_cardinality():
    """Test 'reg' with more entries than allowed."""

    result = validate_node(
        NCV6336,
        i2c_node('compatible = "onnn,ncv6336";\n        reg = <0x1c 0x1d>;'),
    )
    assert kinds(result) == [("reg", ViolationKind.CARDINALITY)]

    # With '#size-cells = <1>' on the bus, the two cells are a single entry
    dt = load_dts_source(
        wrap_example(
            """\
bus {
    #address-cells = <1>;
    #size-cells = <1>;

    regulator@1c {
        compatible = "onnn,ncv6336";
        reg = <0x1c 0x1d>;
    };
};
"""
        )
    )
    assert validate_node(NCV6336, dt.get_node("/example-0/bus/regulator@1c")).valid


def test_empty_compatible():
    """Test a 'compatible' property without a value."""

    result = validate_node(NCV6336, i2c_node("compatible;\n        reg = <0x1c>;"))
    assert not result.valid
    assert kinds(result) == [("compatible", ViolationKind.TYPE)]
    assert result.violations[0].message == "True is not of type 'array'"


def test_reg_type():
    """Test 'reg' properties that aren't a single unsigned integer entry."""

    result = validate_node(
        NCV6336, i2c_node('compatible = "onnn,ncv6336";\n        reg;')
    )
    assert kinds(result) == [("reg", ViolationKind.TYPE)]

    result = validate_node(
        NCV6336, i2c_node('compatible = "onnn,ncv6336";\n        reg = "abc";')
    )
    assert kinds(result) == [("reg", ViolationKind.TYPE)]
    assert result.violations[0].message == "'abc' is not of type 'array'"

    # No entries at all. 'maxItems: 1' means exactly one entry.
    result = validate_node(
        NCV6336, i2c_node('compatible = "onnn,ncv6336";\n        reg = <>;')
    )
    assert kinds(result) == [("reg", ViolationKind.CARDINALITY)]


def test_types_and_children():
    """Test core types, number constraints and child nodes."""

    def sensor(body, children=""):
        return i2c_node(
            'compatible = "vnd,sensor", "vnd,sensor-base";\n'
            "        reg = <0x48>;\n"
            "        #address-cells = <1>;\n"
            "        #size-cells = <0>;\n"
            f"        {body}\n"
            f"        {children}",
            "sensor@48",
        )

    assert validate_node(SENSOR, sensor("vnd,mode = <2>; vnd,low-power;")).valid

    result = validate_node(SENSOR, sensor("vnd,mode = <5>;"))
    assert kinds(result) == [("vnd,mode", ViolationKind.NOT_IN_ENUM)]

    result = validate_node(SENSOR, sensor("vnd,mode = <1 2>;"))
    assert kinds(result) == [("vnd,mode", ViolationKind.CARDINALITY)]

    result = validate_node(SENSOR, sensor("vnd,low-power = <1>;"))
    assert kinds(result) == [("vnd,low-power", ViolationKind.TYPE)]

    result = validate_node(SENSOR, sensor('label = "Ambient";'))
    assert kinds(result) == [("label", ViolationKind.OTHER)]

    result = validate_node(SENSOR, sensor("label = <1>;"))
    assert [kind for _, kind in kinds(result)] == [ViolationKind.TYPE]

    result = validate_node(
        SENSOR,
        sensor(
            "",
            "channel@0 { reg = <0>; vnd,gain = <32>; };\n"
            "        channel@1 { vnd,gain = <1>; foo; };",
        ),
    )
    assert [(v.node_path, v.prop, v.kind) for v in result.violations] == [
        ("/example-0/i2c/sensor@48/channel@0", "vnd,gain", ViolationKind.OTHER),
        ("/example-0/i2c/sensor@48/channel@1", "reg", ViolationKind.MISSING_REQUIRED),
        ("/example-0/i2c/sensor@48/channel@1", "foo", ViolationKind.UNKNOWN_PROPERTY),
    ]

    # Child nodes that match no pattern are unknown properties of the parent
    result = validate_node(SENSOR, sensor("", "extra { };"))
    assert kinds(result) == [("extra", ViolationKind.UNKNOWN_PROPERTY)]

    # The types of standard properties are checked in child nodes, too
    result = validate_node(SENSOR, sensor("", 'channel@0 { reg = "zero"; };'))
    assert [(v.node_path, v.prop, v.kind) for v in result.violations] == [
        ("/example-0/i2c/sensor@48/channel@0", "reg", ViolationKind.TYPE),
    ]


def test_violation_str():
    """Test the string representation of violations."""

    violation = Violation(
        node_path="/i2c/regulator@1c",
        prop="reg",
        kind=ViolationKind.MISSING_REQUIRED,
        message="'reg' is a required property",
        binding_path="onnn,ncv6336.yaml",
        dts_path="board.dts",
    )
    assert str(violation) == (
        "board.dts: /i2c/regulator@1c: reg: 'reg' is a required property\n"
        "\tfrom schema: onnn,ncv6336.yaml"
    )

    violation = Violation(
        node_path="/i2c/ldo@1c",
        prop="$nodename",
        kind=ViolationKind.NODENAME_MISMATCH,
        message="node name 'ldo@1c' does not match pattern 'regulator@[0-9a-f]{2}'",
        binding_path="onnn,ncv6336.yaml",
    )
    assert str(violation) == (
        "<string>: /i2c/ldo@1c: node name 'ldo@1c' does not match pattern "
        "'regulator@[0-9a-f]{2}'\n"
        "\tfrom schema: onnn,ncv6336.yaml"
    )


def test_binding_validator():
    """Test validation with several bindings and references between them."""

    validator = BindingValidator([NCV6336, SENSOR])

    node = i2c_node('compatible = "onnn,ncv6336";\n        reg = <0x1c>;')
    assert validator.validate_node(NCV6336, node).valid

    # A node that is fine for one binding can violate another
    result = validator.validate_node(SENSOR, node)
    assert ("compatible", ViolationKind.NOT_IN_ENUM) in kinds(result)
    assert ("$nodename", ViolationKind.NODENAME_MISMATCH) in kinds(result)
    assert all(v.binding_path == SENSOR.path for v in result.violations)

    # Unresolvable '$ref's are errors in the binding
    unresolvable = Binding(
        os.path.join(HERE, "test-wrong-bindings", "unresolvable-ref.yaml")
    )
    node = i2c_node('compatible = "vnd,unresolvable";\n        vnd,prop = <1>;', "dev@1")
    with pytest.raises(BindingError) as e:
        validate_node(unresolvable, node)
    assert f"{unresolvable.path}: unresolvable reference" in str(e.value)
