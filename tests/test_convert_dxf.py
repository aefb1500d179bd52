from __future__ import annotations

import sys
from pathlib import Path

import pytest

import ezdxfrec
import ezdxfrec.convert as convert_module
from ezdxfrec.polyline import (
    POLYLINE_3D,
    POLYLINE_CLOSED,
    POLYLINE_MESH,
    POLYLINE_POLYFACE,
    VERTEX_MESH,
    VERTEX_POLYFACE,
    add_vertex,
    new_polyline,
)
from ezdxfrec.table import add_cell, new_table
from tests._dxf_helpers import dxf_entities_of_type, triplet_close


def _source(tmp_path: Path) -> Path:
    outline = new_polyline()
    outline.update(layer="Walls", color=1, flag=POLYLINE_CLOSED)
    add_vertex(outline, 0.0, 0.0, bulge=0.5)
    add_vertex(outline, 4.0, 0.0)
    add_vertex(outline, 4.0, 3.0)

    pipe = new_polyline()
    pipe.update(flag=POLYLINE_3D)
    add_vertex(pipe, 1.0, 2.0, 3.0)
    add_vertex(pipe, 4.0, 5.0, 6.0)

    table = new_table()
    add_cell(table, text="Area")

    path = tmp_path / "source.dxf"
    ezdxfrec.write(path, [outline, pipe, table], "R2000")
    return path


def test_to_dxf_writes_polylines_and_skips_tables(tmp_path: Path) -> None:
    pytest.importorskip("ezdxf")

    output = tmp_path / "out" / "converted.dxf"
    result = ezdxfrec.to_dxf(str(_source(tmp_path)), str(output))

    assert output.exists()
    assert result.total_entities == 3
    assert result.written_entities == 2
    assert result.skipped_entities == 1
    assert result.skipped_by_type == {"ACAD_TABLE": 1}
    assert len(dxf_entities_of_type(output, "POLYLINE")) == 2


def test_to_dxf_keeps_geometry_and_attributes(tmp_path: Path) -> None:
    ezdxf = pytest.importorskip("ezdxf")

    output = tmp_path / "converted.dxf"
    ezdxfrec.to_dxf(str(_source(tmp_path)), str(output), types="POLYLINE")

    polylines = list(ezdxf.readfile(str(output)).modelspace().query("POLYLINE"))
    assert len(polylines) == 2
    outline, pipe = polylines
    assert outline.dxf.layer == "Walls"
    assert outline.dxf.color == 1
    assert outline.is_closed
    assert outline.vertices[0].dxf.bulge == pytest.approx(0.5)
    assert pipe.is_3d_polyline
    points = [tuple(point) for point in pipe.points()]
    assert triplet_close(points[0], (1.0, 2.0, 3.0))
    assert triplet_close(points[1], (4.0, 5.0, 6.0))


def test_to_dxf_writes_meshes(tmp_path: Path) -> None:
    ezdxf = pytest.importorskip("ezdxf")

    mesh = new_polyline()
    mesh.update(flag=POLYLINE_MESH, m_vertex_count=2, n_vertex_count=2)
    for x, y in ((0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)):
        add_vertex(mesh, x, y)

    pface = new_polyline()
    pface.update(flag=POLYLINE_POLYFACE, m_vertex_count=3, n_vertex_count=1)
    for x, y in ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0)):
        add_vertex(pface, x, y, flag=VERTEX_MESH | VERTEX_POLYFACE)
    add_vertex(pface, 0.0, 0.0, flag=VERTEX_POLYFACE, face_indices=(1, 2, 3, 0))

    source = tmp_path / "meshes.dxf"
    ezdxfrec.write(source, [mesh, pface], "R2010")
    output = tmp_path / "meshes_out.dxf"

    result = ezdxfrec.read(source).export_dxf(str(output))

    assert result.written_entities == 2
    converted = list(ezdxf.readfile(str(output)).modelspace().query("POLYLINE"))
    assert converted[0].is_poly_face_mesh is False
    assert converted[0].is_polygon_mesh
    assert converted[1].is_poly_face_mesh


def test_to_dxf_strict_raises_on_skipped_records(tmp_path: Path) -> None:
    pytest.importorskip("ezdxf")

    with pytest.raises(ValueError, match="ACAD_TABLE:1"):
        ezdxfrec.to_dxf(str(_source(tmp_path)), str(tmp_path / "strict.dxf"), strict=True)

    assert not (tmp_path / "strict.dxf").exists()


def test_to_dxf_requires_ezdxf(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setitem(sys.modules, "ezdxf", None)

    with pytest.raises(ImportError, match=r"ezdxfrec\[dxf\]"):
        convert_module.to_dxf(str(tmp_path / "missing.dxf"), str(tmp_path / "out.dxf"))
