from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .chain import ChainManager, append_node, chain_from, iter_chain
from .codec import Kind, rule
from .decoder import decode_record, decode_staged
from .encoder import (
    TagBuffer,
    encode_record,
    repair_string_defaults,
    require_valid,
    write_entity_header,
    write_extrusion,
)
from .entity import ENTITY_SCHEMA, UNASSIGNED, EntityRecord, Point3D
from .stream import TagReader, TagWriter
from .versions import AcadVersion

logger = logging.getLogger(__name__)

POLYLINE_CLOSED = 1
POLYLINE_CURVE_FIT = 2
POLYLINE_SPLINE_FIT = 4
POLYLINE_3D = 8
POLYLINE_MESH = 16
POLYLINE_MESH_CLOSED_N = 32
POLYLINE_POLYFACE = 64
POLYLINE_CONTINUOUS_LINETYPE = 128

VERTEX_EXTRA = 1
VERTEX_CURVE_FIT_TANGENT = 2
VERTEX_SPLINE = 8
VERTEX_SPLINE_FRAME = 16
VERTEX_3D = 32
VERTEX_MESH = 64
VERTEX_POLYFACE = 128

SURFACE_TYPES = (0, 5, 6, 8)

VERTEX_SCHEMA = ENTITY_SCHEMA.extend(
    "VERTEX",
    (
        rule(10, "x0", Kind.FLOAT),
        rule(20, "y0", Kind.FLOAT),
        rule(30, "z0", Kind.FLOAT),
        rule(40, "start_width", Kind.FLOAT),
        rule(41, "end_width", Kind.FLOAT),
        rule(42, "bulge", Kind.FLOAT),
        rule(50, "tangent_direction", Kind.FLOAT),
        rule(70, "flag", Kind.INT),
        rule(71, "face_indices", Kind.INT, index=0),
        rule(72, "face_indices", Kind.INT, index=1),
        rule(73, "face_indices", Kind.INT, index=2),
        rule(74, "face_indices", Kind.INT, index=3),
        rule(91, "vertex_identifier", Kind.INT, since=AcadVersion.R2010),
    ),
    subclass_markers=(
        "AcDbVertex",
        "AcDb2dVertex",
        "AcDb3dPolylineVertex",
        "AcDbPolygonMeshVertex",
        "AcDbPolyFaceMeshVertex",
        "AcDbFaceRecord",
    ),
)

POLYLINE_SCHEMA = ENTITY_SCHEMA.extend(
    "POLYLINE",
    (
        rule(10, "x0", Kind.FLOAT),
        rule(20, "y0", Kind.FLOAT),
        rule(30, "z0", Kind.FLOAT),
        rule(40, "start_width", Kind.FLOAT),
        rule(41, "end_width", Kind.FLOAT),
        rule(66, "vertices_follow", Kind.INT),
        rule(70, "flag", Kind.INT),
        rule(71, "m_vertex_count", Kind.INT),
        rule(72, "n_vertex_count", Kind.INT),
        rule(73, "m_surface_density", Kind.INT),
        rule(74, "n_surface_density", Kind.INT),
        rule(75, "surface_type", Kind.INT),
    ),
    subclass_markers=("AcDb2dPolyline", "AcDb3dPolyline", "AcDbPolygonMesh", "AcDbPolyFaceMesh"),
    ranges={"vertices_follow": (1, 1)},
)

SEQEND_SCHEMA = ENTITY_SCHEMA.extend("SEQEND", ())


@dataclass
class Vertex(EntityRecord):
    x0: float = 0.0
    y0: float = 0.0
    z0: float = 0.0
    start_width: float = 0.0
    end_width: float = 0.0
    bulge: float = 0.0
    tangent_direction: float = 0.0
    flag: int = 0
    face_indices: tuple[int, int, int, int] = (0, 0, 0, 0)
    vertex_identifier: int = 0

    DXFTYPE = "VERTEX"
    SCHEMA = VERTEX_SCHEMA

    @property
    def location(self) -> Point3D:
        return (self.x0, self.y0, self.z0)

    @property
    def is_face_record(self) -> bool:
        return bool(self.flag & VERTEX_POLYFACE) and not self.flag & VERTEX_MESH


@dataclass
class Polyline(EntityRecord):
    x0: float = 0.0
    y0: float = 0.0
    z0: float = 0.0
    start_width: float = 0.0
    end_width: float = 0.0
    vertices_follow: int = 0
    flag: int = 0
    m_vertex_count: int = 0
    n_vertex_count: int = 0
    m_surface_density: int = 0
    n_surface_density: int = 0
    surface_type: int = 0
    vertices: Vertex | None = field(default=None, repr=False)
    seqend_identifier: int = 0

    DXFTYPE = "POLYLINE"
    SCHEMA = POLYLINE_SCHEMA
    OWNED = ("vertices",)

    @classmethod
    def schema_defaults(cls) -> dict[str, Any]:
        return {
            **super().schema_defaults(),
            "vertices_follow": 1,
            "seqend_identifier": UNASSIGNED,
        }

    @property
    def closed(self) -> bool:
        return bool(self.flag & POLYLINE_CLOSED)

    @property
    def is_3d(self) -> bool:
        return bool(self.flag & POLYLINE_3D)

    @property
    def is_mesh(self) -> bool:
        return bool(self.flag & POLYLINE_MESH)

    @property
    def is_polyface(self) -> bool:
        return bool(self.flag & POLYLINE_POLYFACE)

    def to_points(self) -> list[Point3D]:
        return [vertex.location for vertex in iter_chain(self.vertices) if not vertex.is_face_record]

    def _check_field(self, name: str, value: Any) -> str | None:
        if name in {"x0", "y0"} and value != 0.0:
            return "the polyline anchor X and Y are always 0.0"
        if name == "surface_type" and value not in SURFACE_TYPES:
            return f"expected one of {SURFACE_TYPES}"
        return super()._check_field(name, value)

    def _extra_issues(self) -> list[str]:
        issues = []
        if self.x0 != 0.0:
            issues.append(f"x0={self.x0} but the polyline anchor X must be 0.0")
        if self.y0 != 0.0:
            issues.append(f"y0={self.y0} but the polyline anchor Y must be 0.0")
        if self.surface_type not in SURFACE_TYPES:
            issues.append(f"surface_type={self.surface_type} is not one of {SURFACE_TYPES}")
        return issues


@dataclass
class Seqend(EntityRecord):
    DXFTYPE = "SEQEND"
    SCHEMA = SEQEND_SCHEMA


VERTICES: ChainManager[Vertex] = ChainManager(Vertex)
POLYLINES: ChainManager[Polyline] = ChainManager(Polyline, owned={"vertices": VERTICES})


def new_vertex() -> Vertex:
    return VERTICES.new()


def new_polyline() -> Polyline:
    return POLYLINES.new()


def add_vertex(polyline: Polyline, x: float, y: float, z: float = 0.0, **changes: Any) -> Vertex:
    polyline.ensure_live()
    vertex = new_vertex()
    if "flag" not in changes:
        if polyline.is_3d:
            changes["flag"] = VERTEX_3D
        elif polyline.is_mesh:
            changes["flag"] = VERTEX_MESH
    if "layer" not in changes:
        changes["layer"] = polyline.layer
    vertex.update(x0=x, y0=y, z0=z, **changes)
    polyline.vertices = append_node(polyline.vertices, vertex)
    return vertex


def polyline_points(polyline: Polyline) -> list[Point3D]:
    return polyline.to_points()


def decode_vertex(reader: TagReader, vertex: Vertex | None = None) -> Vertex:
    return decode_staged(
        reader,
        vertex,
        VERTICES,
        lambda stream, target: decode_record(stream, VERTEX_SCHEMA, target),
        "VERTEX",
    )


def decode_polyline(reader: TagReader, polyline: Polyline | None = None) -> Polyline:
    """Decode a POLYLINE record, its VERTEX chain and the closing SEQEND.

    The reader must be positioned just after the ``0/POLYLINE`` tag. Decoding
    stops in front of the first code 0 tag that does not belong to the
    polyline, which is left for the caller.
    """
    return decode_staged(reader, polyline, POLYLINES, _decode_polyline_body, "POLYLINE")


def _decode_polyline_body(reader: TagReader, polyline: Polyline) -> None:
    decode_record(reader, POLYLINE_SCHEMA, polyline)
    vertices: list[Vertex] = []
    found_seqend = False
    try:
        while True:
            tag = reader.peek()
            if tag is None:
                break
            name = tag.value.strip()
            if name == "VERTEX":
                reader.next_tag()
                vertex = new_vertex()
                vertices.append(vertex)
                decode_record(reader, VERTEX_SCHEMA, vertex)
                continue
            if name == "SEQEND":
                reader.next_tag()
                seqend = decode_record(reader, SEQEND_SCHEMA, Seqend().init_defaults())
                polyline.seqend_identifier = seqend.identifier
                found_seqend = True
            break
    finally:
        polyline.vertices = chain_from(vertices)
    if not found_seqend:
        logger.warning(
            "POLYLINE: vertex sequence not closed by SEQEND in %s line %d",
            reader.filename,
            reader.line_number,
        )


def encode_vertex(writer: TagWriter, vertex: Vertex) -> int:
    require_valid([vertex], "VERTEX")
    repair_string_defaults(vertex)
    return encode_record(writer, vertex, _build_vertex)


def encode_polyline(writer: TagWriter, polyline: Polyline) -> int:
    polyline.ensure_live()
    vertices = list(iter_chain(polyline.vertices))
    require_valid([polyline, *vertices], "POLYLINE")
    for record in (polyline, *vertices):
        repair_string_defaults(record)
    return encode_record(writer, polyline, _build_polyline)


def free_vertex(vertex: Vertex) -> None:
    VERTICES.free_one(vertex)


def free_vertex_chain(head: Vertex | None) -> int:
    return VERTICES.free_chain(head)


def free_polyline(polyline: Polyline) -> None:
    POLYLINES.free_one(polyline)


def free_polyline_chain(head: Polyline | None) -> int:
    return POLYLINES.free_chain(head)


def release_vertices(polyline: Polyline) -> int:
    count = VERTICES.free_chain(polyline.vertices) if polyline.vertices is not None else 0
    polyline.vertices = None
    return count


def _polyline_subclass(polyline: Polyline) -> str:
    if polyline.flag & POLYLINE_3D:
        return "AcDb3dPolyline"
    if polyline.flag & POLYLINE_MESH:
        return "AcDbPolygonMesh"
    if polyline.flag & POLYLINE_POLYFACE:
        return "AcDbPolyFaceMesh"
    return "AcDb2dPolyline"


def _vertex_subclass(vertex: Vertex) -> str:
    if vertex.flag & VERTEX_3D:
        return "AcDb3dPolylineVertex"
    if vertex.flag & VERTEX_MESH and vertex.flag & VERTEX_POLYFACE:
        return "AcDbPolyFaceMeshVertex"
    if vertex.flag & VERTEX_MESH:
        return "AcDbPolygonMeshVertex"
    if vertex.flag & VERTEX_POLYFACE:
        return "AcDbFaceRecord"
    return "AcDb2dVertex"


def _build_vertex(buf: TagBuffer, vertex: Vertex) -> None:
    write_entity_header(buf, vertex)
    if not vertex.is_face_record:
        buf.marker("AcDbVertex")
    buf.marker(_vertex_subclass(vertex))
    buf.tag(10, Kind.FLOAT, vertex.x0)
    buf.tag(20, Kind.FLOAT, vertex.y0)
    buf.tag(30, Kind.FLOAT, vertex.z0)
    buf.tag_if(vertex.thickness != 0.0, 39, Kind.FLOAT, vertex.thickness)
    buf.tag_if(vertex.start_width != 0.0, 40, Kind.FLOAT, vertex.start_width)
    buf.tag_if(vertex.end_width != 0.0, 41, Kind.FLOAT, vertex.end_width)
    buf.tag_if(vertex.bulge != 0.0, 42, Kind.FLOAT, vertex.bulge)
    buf.tag(70, Kind.INT, vertex.flag)
    buf.tag_if(vertex.tangent_direction != 0.0, 50, Kind.FLOAT, vertex.tangent_direction)
    for code, index in zip((71, 72, 73, 74), vertex.face_indices):
        buf.tag_if(index != 0, code, Kind.INT, index)
    buf.tag_if(
        buf.since(AcadVersion.R2010) and vertex.vertex_identifier != 0,
        91,
        Kind.INT,
        vertex.vertex_identifier,
    )
    write_extrusion(buf, vertex)


def _build_polyline(buf: TagBuffer, polyline: Polyline) -> None:
    write_entity_header(buf, polyline)
    buf.marker(_polyline_subclass(polyline))
    buf.tag(66, Kind.INT, polyline.vertices_follow)
    buf.tag(10, Kind.FLOAT, polyline.x0)
    buf.tag(20, Kind.FLOAT, polyline.y0)
    buf.tag(30, Kind.FLOAT, polyline.z0)
    buf.tag_if(polyline.thickness != 0.0, 39, Kind.FLOAT, polyline.thickness)
    buf.tag(70, Kind.INT, polyline.flag)
    buf.tag_if(polyline.start_width != 0.0, 40, Kind.FLOAT, polyline.start_width)
    buf.tag_if(polyline.end_width != 0.0, 41, Kind.FLOAT, polyline.end_width)
    buf.tag_if(polyline.m_vertex_count != 0, 71, Kind.INT, polyline.m_vertex_count)
    buf.tag_if(polyline.n_vertex_count != 0, 72, Kind.INT, polyline.n_vertex_count)
    buf.tag_if(polyline.m_surface_density != 0, 73, Kind.INT, polyline.m_surface_density)
    buf.tag_if(polyline.n_surface_density != 0, 74, Kind.INT, polyline.n_surface_density)
    buf.tag_if(polyline.surface_type != 0, 75, Kind.INT, polyline.surface_type)
    write_extrusion(buf, polyline)
    for vertex in iter_chain(polyline.vertices):
        _build_vertex(buf, vertex)
    buf.start("SEQEND")
    buf.tag_if(polyline.seqend_identifier != UNASSIGNED, 5, Kind.HEX, polyline.seqend_identifier)
    buf.marker("AcDbEntity")
    buf.tag_if(polyline.paperspace != 0, 67, Kind.INT, polyline.paperspace)
    buf.tag(8, Kind.STR, polyline.layer)
