from __future__ import annotations

from pathlib import Path

import pytest

import ezdxfrec
import ezdxfrec.document as document_module
from ezdxfrec.errors import EncodeError
from ezdxfrec.polyline import POLYLINE_3D, Polyline, add_vertex, new_polyline
from ezdxfrec.table import Table, add_cell, new_table
from ezdxfrec.versions import AcadVersion
from tests._dxf_helpers import dxf_entities_of_type, group_values, tag_text


def _outline(layer: str = "0", paperspace: int = 0) -> Polyline:
    polyline = new_polyline()
    polyline.update(layer=layer, paperspace=paperspace)
    add_vertex(polyline, 0.0, 0.0)
    add_vertex(polyline, 4.0, 0.0)
    add_vertex(polyline, 4.0, 3.0)
    return polyline


def _table() -> Table:
    table = new_table()
    table.update(number_of_rows=1, number_of_columns=1, row_heights=[1.0], column_widths=[2.0])
    add_cell(table, text="Area")
    return table


def test_write_then_read(tmp_path: Path) -> None:
    output = tmp_path / "plan.dxf"

    count = ezdxfrec.write(output, [_outline("Walls"), _table()], "R2000")

    assert count == 2
    doc = ezdxfrec.read(output)
    assert doc.version is AcadVersion.R2000
    polylines = list(doc.modelspace().query("POLYLINE"))
    assert len(polylines) == 1
    assert polylines[0].layer == "Walls"
    assert polylines[0].to_points() == [(0.0, 0.0, 0.0), (4.0, 0.0, 0.0), (4.0, 3.0, 0.0)]
    tables = list(doc.modelspace().query("TABLE"))
    assert len(tables) == 1
    assert tables[0].cells.full_text() == "Area"


def test_written_file_layout(tmp_path: Path) -> None:
    output = tmp_path / "plan.dxf"
    ezdxfrec.write(output, [_outline()], "R2010")

    text = output.read_text(encoding="utf-8")

    assert text.startswith("  0\nSECTION\n  2\nHEADER\n  9\n$ACADVER\n  1\nAC1024\n  0\nENDSEC\n")
    assert text.endswith("  0\nENDSEC\n  0\nEOF\n")
    assert len(dxf_entities_of_type(output, "POLYLINE")) == 1
    assert len(dxf_entities_of_type(output, "VERTEX")) == 3
    seqend = dxf_entities_of_type(output, "SEQEND")
    assert len(seqend) == 1
    assert group_values(seqend[0], "8") == ["0"]


def test_query_type_filters(tmp_path: Path) -> None:
    output = tmp_path / "plan.dxf"
    ezdxfrec.write(output, [_outline(), _table(), _outline()], "R2004")
    layout = ezdxfrec.read(output).modelspace()

    assert [record.DXFTYPE for record in layout.query()] == ["POLYLINE", "ACAD_TABLE", "POLYLINE"]
    assert len(list(layout.query("*"))) == 3
    assert len(list(layout.query("POLY*"))) == 2
    assert len(list(layout.query(["table"]))) == 1
    assert len(list(layout.query("polyline, acad_table"))) == 3
    assert list(layout.query("LINE")) == []


def test_normalize_types() -> None:
    assert document_module._normalize_types(None) == ["POLYLINE", "ACAD_TABLE"]
    assert document_module._normalize_types("table polyline") == ["ACAD_TABLE", "POLYLINE"]
    assert document_module._normalize_types("ACAD_*") == ["ACAD_TABLE"]
    assert document_module._normalize_types(" , ") == ["POLYLINE", "ACAD_TABLE"]
    assert document_module._normalize_types("CIRCLE") == []
    assert document_module._normalize_types(["all"]) == ["POLYLINE", "ACAD_TABLE"]
    assert document_module._normalize_types("acad_table POLY??NE table") == ["ACAD_TABLE", "POLYLINE"]


def test_paperspace_records_are_kept_apart(tmp_path: Path) -> None:
    output = tmp_path / "sheets.dxf"
    ezdxfrec.write(output, [_outline("Model"), _outline("Sheet", paperspace=1)])
    doc = ezdxfrec.read(output)

    assert [record.layer for record in doc.modelspace().query()] == ["Model"]
    assert [record.layer for record in doc.paperspace().query()] == ["Sheet"]


def test_unsupported_records_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "mixed.dxf"
    path.write_text(
        tag_text(
            (0, "SECTION"),
            (2, "HEADER"),
            (9, "$ACADVER"),
            (1, "AC1015"),
            (0, "ENDSEC"),
            (0, "SECTION"),
            (2, "ENTITIES"),
            (0, "LINE"),
            (8, "0"),
            (10, "0.0"),
            (20, "0.0"),
            (30, "0.0"),
            (0, "POLYLINE"),
            (8, "Pipes"),
            (66, 1),
            (10, "0.0"),
            (20, "0.0"),
            (30, "0.0"),
            (70, POLYLINE_3D),
            (0, "VERTEX"),
            (8, "Pipes"),
            (10, "1.0"),
            (20, "2.0"),
            (30, "3.0"),
            (70, 32),
            (0, "SEQEND"),
            (8, "Pipes"),
            (0, "CIRCLE"),
            (8, "0"),
            (40, "1.0"),
            (0, "ENDSEC"),
            (0, "EOF"),
        ),
        encoding="utf-8",
    )

    records = list(ezdxfrec.read(path).modelspace().query())

    assert len(records) == 1
    assert records[0].layer == "Pipes"
    assert records[0].to_points() == [(1.0, 2.0, 3.0)]


@pytest.mark.parametrize(
    ("acadver", "expected"),
    [("AC1009", AcadVersion.R12), ("AC1015", AcadVersion.R2000), ("AC1032", AcadVersion.R2018)],
)
def test_detect_version(tmp_path: Path, acadver: str, expected: AcadVersion) -> None:
    path = tmp_path / "header.dxf"
    path.write_text(
        tag_text((0, "SECTION"), (2, "HEADER"), (9, "$ACADVER"), (1, acadver), (0, "ENDSEC"), (0, "EOF")),
        encoding="utf-8",
    )

    assert ezdxfrec.detect_version(path) is expected


def test_detect_version_defaults_to_r12(tmp_path: Path) -> None:
    path = tmp_path / "bare.dxf"
    path.write_text(tag_text((0, "SECTION"), (2, "ENTITIES"), (0, "ENDSEC"), (0, "EOF")), encoding="utf-8")

    assert ezdxfrec.detect_version(path) is AcadVersion.R12
    assert list(ezdxfrec.read(path).modelspace().query()) == []


def test_detect_version_rejects_unknown(tmp_path: Path) -> None:
    path = tmp_path / "future.dxf"
    path.write_text(
        tag_text((0, "SECTION"), (2, "HEADER"), (9, "$ACADVER"), (1, "AC9999"), (0, "ENDSEC")),
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="unsupported DXF version: AC9999"):
        ezdxfrec.read(path)


def test_failed_write_leaves_no_file(tmp_path: Path) -> None:
    output = tmp_path / "broken.dxf"
    bad = _outline()
    bad.x0 = 5.0

    with pytest.raises(EncodeError):
        ezdxfrec.write(output, [_outline(), bad])

    assert not output.exists()


def test_write_rejects_foreign_records(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="cannot write records of type str"):
        ezdxfrec.write(tmp_path / "x.dxf", ["POLYLINE"])
