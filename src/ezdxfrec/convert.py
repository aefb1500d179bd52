from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .chain import iter_chain
from .config import get_defaults
from .document import Document, Layout, read
from .entity import EntityRecord
from .polyline import Polyline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConvertResult:
    source_path: str
    output_path: str
    total_entities: int
    written_entities: int
    skipped_entities: int
    skipped_by_type: dict[str, int]


def to_dxf(
    source: str | Document | Layout,
    output_path: str,
    *,
    types: str | Iterable[str] | None = None,
    dxf_version: str = "R2010",
    strict: bool = False,
) -> ConvertResult:
    """Re-create the decoded records of ``source`` in a new ezdxf document.

    Records ezdxf cannot build from the decoded fields (ACAD_TABLE) are
    counted as skipped; with ``strict=True`` any skipped record is an error.
    """
    ezdxf = _require_ezdxf()
    source_path, layout = _resolve_layout(source)

    dxf_doc = ezdxf.new(dxfversion=dxf_version)
    modelspace = dxf_doc.modelspace()

    total = 0
    written = 0
    skipped_by_type: dict[str, int] = {}

    for record in layout.query(types):
        total += 1
        if _write_record_to_modelspace(modelspace, record):
            written += 1
            continue
        skipped_by_type[record.DXFTYPE] = skipped_by_type.get(record.DXFTYPE, 0) + 1

    skipped = total - written
    if strict and skipped > 0:
        summary = ", ".join(
            f"{dxftype}:{count}" for dxftype, count in sorted(skipped_by_type.items())
        )
        raise ValueError(f"failed to convert {skipped} entities ({summary})")

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    dxf_doc.saveas(str(out_path))

    return ConvertResult(
        source_path=source_path,
        output_path=str(out_path),
        total_entities=total,
        written_entities=written,
        skipped_entities=skipped,
        skipped_by_type=dict(sorted(skipped_by_type.items())),
    )


def _require_ezdxf():
    try:
        import ezdxf
    except Exception as exc:
        raise ImportError(
            "ezdxf is required for DXF conversion. "
            'Install it with `pip install "ezdxfrec[dxf]"`.'
        ) from exc
    return ezdxf


def _resolve_layout(source: str | Document | Layout) -> tuple[str, Layout]:
    if isinstance(source, Layout):
        return source.doc.path, source
    if isinstance(source, Document):
        return source.path, source.modelspace()
    doc = read(source)
    return str(source), doc.modelspace()


def _write_record_to_modelspace(modelspace: Any, record: EntityRecord) -> bool:
    if not isinstance(record, Polyline):
        return False
    try:
        return _write_polyline(modelspace, record)
    except Exception:
        logger.warning("could not convert POLYLINE %s", _handle_label(record), exc_info=True)
        return False


def _write_polyline(modelspace: Any, polyline: Polyline) -> bool:
    dxfattribs = _entity_dxfattribs(polyline)
    vertices = list(iter_chain(polyline.vertices))

    if polyline.is_polyface:
        points = [vertex.location for vertex in vertices if not vertex.is_face_record]
        faces = []
        for vertex in vertices:
            if not vertex.is_face_record:
                continue
            indices = [abs(index) for index in vertex.face_indices if index != 0]
            faces.append([points[index - 1] for index in indices])
        pface = modelspace.add_polyface(dxfattribs=dxfattribs)
        pface.append_faces(faces)
        return True

    if polyline.is_mesh:
        m_count = polyline.m_vertex_count
        n_count = polyline.n_vertex_count
        if m_count * n_count != len(vertices):
            return False
        mesh = modelspace.add_polymesh(size=(m_count, n_count), dxfattribs=dxfattribs)
        for position, vertex in enumerate(vertices):
            mesh.set_mesh_vertex((position // n_count, position % n_count), vertex.location)
        return True

    if polyline.is_3d:
        modelspace.add_polyline3d(
            [vertex.location for vertex in vertices],
            close=polyline.closed,
            dxfattribs=dxfattribs,
        )
        return True

    if polyline.z0 != 0.0:
        dxfattribs["elevation"] = (0.0, 0.0, polyline.z0)
    modelspace.add_polyline2d(
        [
            (vertex.x0, vertex.y0, vertex.start_width, vertex.end_width, vertex.bulge)
            for vertex in vertices
        ],
        format="xyseb",
        close=polyline.closed,
        dxfattribs=dxfattribs,
    )
    return True


def _entity_dxfattribs(record: EntityRecord) -> dict[str, Any]:
    defaults = get_defaults()
    dxfattribs: dict[str, Any] = {"layer": record.layer}
    if record.color != defaults.color:
        dxfattribs["color"] = record.color
    if record.linetype != defaults.linetype:
        dxfattribs["linetype"] = record.linetype
    return dxfattribs


def _handle_label(record: EntityRecord) -> str:
    return "without handle" if record.handle is None else f"#{record.handle:X}"
