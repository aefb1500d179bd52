from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, TypeVar

from .codec import Kind, format_value
from .config import get_defaults
from .entity import DEFAULT_EXTRUSION, UNASSIGNED, EntityRecord, Record
from .errors import EncodeError
from .stream import Tag, TagWriter
from .versions import AcadVersion

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class TagBuffer:
    """Tags of one record (and its chain), written out only when complete."""

    def __init__(self, version: AcadVersion):
        self.version = version
        self.tags: list[Tag] = []

    def since(self, version: AcadVersion) -> bool:
        return self.version >= version

    def until(self, version: AcadVersion) -> bool:
        return self.version <= version

    def raw(self, code: int, text: str) -> None:
        self.tags.append(Tag(code, text))

    def tag(self, code: int, kind: Kind, value: Any) -> None:
        self.tags.append(Tag(code, format_value(kind, value)))

    def tag_if(self, condition: bool, code: int, kind: Kind, value: Any) -> None:
        if condition:
            self.tag(code, kind, value)

    def repeat(self, code: int, kind: Kind, values: Iterable[Any]) -> int:
        count = 0
        for value in values:
            self.tag(code, kind, value)
            count += 1
        return count

    def marker(self, name: str) -> None:
        if self.since(AcadVersion.R13):
            self.raw(100, name)

    def start(self, dxftype: str) -> None:
        self.raw(0, dxftype)


def require_valid(records: Iterable[Record], label: str) -> None:
    problems = []
    for record in records:
        record.ensure_live()
        for issue in record.range_issues():
            problems.append(f"{record.DXFTYPE}: {issue}")
    if problems:
        raise EncodeError(f"cannot write {label}: " + "; ".join(problems))


def repair_string_defaults(record: Record) -> None:
    before = {name: getattr(record, name) for name in record.SCHEMA.string_defaults}
    for name in record.apply_string_defaults():
        logger.warning(
            "%s with id-code %s: empty %s reset to default %r (was %r)",
            record.DXFTYPE,
            _id_label(record),
            name,
            getattr(record, name),
            before[name],
        )


def encode_record(writer: TagWriter, record: R, build: Callable[[TagBuffer, R], None]) -> int:
    buf = TagBuffer(writer.version)
    try:
        build(buf, record)
    except ValueError as exc:
        raise EncodeError(f"cannot write {record.DXFTYPE}: {exc}") from exc
    writer.write_tags(buf.tags)
    return len(buf.tags)


def write_entity_header(buf: TagBuffer, record: EntityRecord, *, force_graphics_size: bool = False) -> None:
    defaults = get_defaults()
    buf.start(record.DXFTYPE)
    buf.tag_if(record.identifier != UNASSIGNED, 5, Kind.HEX, record.identifier)
    if buf.since(AcadVersion.R14):
        if record.soft_owner_handle:
            buf.raw(102, "{ACAD_REACTORS")
            buf.tag(330, Kind.STR, record.soft_owner_handle)
            buf.raw(102, "}")
        if record.hard_owner_handle:
            buf.raw(102, "{ACAD_XDICTIONARY")
            buf.tag(360, Kind.STR, record.hard_owner_handle)
            buf.raw(102, "}")
    buf.marker("AcDbEntity")
    buf.tag_if(record.paperspace != 0, 67, Kind.INT, record.paperspace)
    buf.tag(8, Kind.STR, record.layer)
    buf.tag_if(record.linetype != defaults.linetype, 6, Kind.STR, record.linetype)
    buf.tag_if(
        buf.until(AcadVersion.R11) and defaults.flatland and record.elevation != 0.0,
        38,
        Kind.FLOAT,
        record.elevation,
    )
    buf.tag_if(record.color != defaults.color, 62, Kind.INT, record.color)
    buf.tag_if(
        buf.since(AcadVersion.R13) and record.linetype_scale != defaults.linetype_scale,
        48,
        Kind.FLOAT,
        record.linetype_scale,
    )
    buf.tag_if(record.visibility != 0, 60, Kind.INT, record.visibility)
    if buf.since(AcadVersion.R2000):
        buf.tag_if(record.lineweight != defaults.lineweight, 370, Kind.INT, record.lineweight)
        buf.tag_if(bool(record.plot_style_name), 390, Kind.STR, record.plot_style_name)
    if buf.since(AcadVersion.R2004):
        buf.tag_if(record.color_value != UNASSIGNED, 420, Kind.INT, record.color_value)
        buf.tag_if(bool(record.color_name), 430, Kind.STR, record.color_name)
        buf.tag_if(record.transparency != 0, 440, Kind.INT, record.transparency)
    if buf.since(AcadVersion.R2007):
        buf.tag_if(bool(record.material), 347, Kind.STR, record.material)
        buf.tag_if(record.shadow_mode != 0, 284, Kind.INT, record.shadow_mode)
    if buf.since(AcadVersion.R2000):
        size_code = 160 if buf.since(AcadVersion.R2010) else 92
        if force_graphics_size or record.graphics_data_size or record.binary_graphics_data:
            buf.tag(size_code, Kind.INT, record.graphics_data_size)
        buf.repeat(310, Kind.STR, record.binary_graphics_data)


def write_extrusion(buf: TagBuffer, record: EntityRecord) -> None:
    if not buf.since(AcadVersion.R12):
        return
    if tuple(record.extrusion) == DEFAULT_EXTRUSION:
        return
    x, y, z = record.extrusion
    buf.tag(210, Kind.FLOAT, x)
    buf.tag(220, Kind.FLOAT, y)
    buf.tag(230, Kind.FLOAT, z)


def report_count_mismatch(label: str, name: str, declared: int, actual: int) -> bool:
    if declared == actual:
        return False
    logger.warning(
        "%s: %s declares %d entries but %d are stored",
        label,
        name,
        declared,
        actual,
    )
    return True


def _id_label(record: Record) -> str:
    identifier = getattr(record, "identifier", UNASSIGNED)
    return "unassigned" if identifier == UNASSIGNED else f"{identifier:X}"
