from __future__ import annotations

import pytest

from ezdxfrec.codec import Kind, format_value, parse_value, rule
from ezdxfrec.entity import ENTITY_SCHEMA
from ezdxfrec.table import TABLE_SCHEMA
from ezdxfrec.versions import AcadVersion


@pytest.mark.parametrize(
    ("kind", "raw_value", "expected"),
    [
        (Kind.INT, " 42 ", 42),
        (Kind.INT, "-3", -3),
        (Kind.HEX, "1F", 0x1F),
        (Kind.HEX, "ff", 0xFF),
        (Kind.FLOAT, "1e3", 1000.0),
        (Kind.FLOAT, " 2.5", 2.5),
        (Kind.STR, " keep spaces ", " keep spaces "),
        (Kind.FLAG, "1", True),
        (Kind.FLAG, "0", False),
    ],
)
def test_parse_value(kind: Kind, raw_value: str, expected: object) -> None:
    assert parse_value(kind, raw_value) == expected


@pytest.mark.parametrize(
    ("kind", "raw_value"),
    [(Kind.INT, "red"), (Kind.INT, "1.5"), (Kind.FLOAT, "n/a"), (Kind.HEX, "-1"), (Kind.HEX, "XYZ")],
)
def test_parse_value_rejects_malformed_text(kind: Kind, raw_value: str) -> None:
    with pytest.raises(ValueError):
        parse_value(kind, raw_value)


def test_format_value() -> None:
    assert format_value(Kind.HEX, 255) == "FF"
    assert format_value(Kind.INT, 7) == "7"
    assert format_value(Kind.FLOAT, 0.1) == "0.1"
    assert format_value(Kind.FLOAT, 3) == "3.0"
    assert format_value(Kind.FLAG, True) == "1"


def test_float_text_is_exact() -> None:
    value = 1.0 / 3.0

    assert parse_value(Kind.FLOAT, format_value(Kind.FLOAT, value)) == value


def test_format_value_rejects_line_breaks() -> None:
    with pytest.raises(ValueError, match="line break"):
        format_value(Kind.STR, "two\nlines")


def test_lookup_applies_version_bounds() -> None:
    assert ENTITY_SCHEMA.lookup(48, AcadVersion.R12) is None
    assert ENTITY_SCHEMA.lookup(48, AcadVersion.R13).field == "linetype_scale"
    assert ENTITY_SCHEMA.lookup(38, AcadVersion.R11).field == "elevation"
    assert ENTITY_SCHEMA.lookup(38, AcadVersion.R2000) is None
    assert ENTITY_SCHEMA.lookup(160, AcadVersion.R2007) is None
    assert ENTITY_SCHEMA.lookup(160, AcadVersion.R2010).field == "graphics_data_size"


def test_lookup_routes_shared_code_by_version_then_occurrence() -> None:
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R2000, 0).field == "graphics_data_size"
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R2000, 1).field == "number_of_columns"
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R2000, 2) is None
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R2007, 1).field == "number_of_columns"
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R14, 0).field == "number_of_columns"
    assert TABLE_SCHEMA.lookup(92, AcadVersion.R2010, 0).field == "number_of_columns"
    assert TABLE_SCHEMA.lookup(280, AcadVersion.R2010, 0).field == "table_data_version"
    assert TABLE_SCHEMA.lookup(280, AcadVersion.R2010, 1).field == "suppress_table_title"


def test_extend_merges_and_excludes_codes() -> None:
    schema = ENTITY_SCHEMA.extend(
        "CUSTOM",
        (rule(92, "count", Kind.INT),),
        subclass_markers=("AcDbCustom",),
        ranges={"count": (0, 9)},
        exclude=(92,),
    )

    assert schema.lookup(92, AcadVersion.R2000).field == "count"
    assert schema.lookup(8, AcadVersion.R2000).field == "layer"
    assert schema.subclass_markers == {"AcDbEntity", "AcDbCustom"}
    assert schema.ranges["count"] == (0, 9)
    assert schema.ranges["visibility"] == (0, 1)
    assert schema.kind_of("count") is Kind.INT
    assert schema.knows(5, AcadVersion.R12)
    assert not schema.knows(9999, AcadVersion.R12)
