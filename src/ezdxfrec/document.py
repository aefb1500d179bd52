from __future__ import annotations

import fnmatch
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator

from .entity import EntityRecord
from .polyline import Polyline, decode_polyline, encode_polyline
from .stream import Tag, TagReader, TagWriter
from .table import Table, decode_table, encode_table
from .versions import AcadVersion, parse_version

logger = logging.getLogger(__name__)

SUPPORTED_ENTITY_TYPES = ("POLYLINE", "ACAD_TABLE")

TYPE_ALIASES = {
    "TABLE": "ACAD_TABLE",
}

_DECODERS: dict[str, Callable[[TagReader], EntityRecord]] = {
    "POLYLINE": decode_polyline,
    "ACAD_TABLE": decode_table,
}

_ENCODERS: dict[type, Callable[[TagWriter, EntityRecord], int]] = {
    Polyline: encode_polyline,
    Table: encode_table,
}


def detect_version(path: str | Path) -> AcadVersion:
    """Version named by ``$ACADVER`` in the HEADER section; R12 when absent."""
    with open(path, encoding="utf-8", errors="replace", newline=None) as fp:
        reader = TagReader(fp, AcadVersion.R12, str(path))
        return _detect_version(reader)


def read(path: str | Path) -> "Document":
    version = detect_version(path)
    return Document(path=str(path), version=version)


def write(
    path: str | Path,
    records: Iterable[EntityRecord],
    version: AcadVersion | str | int = AcadVersion.R2000,
) -> int:
    """Write ``records`` as the ENTITIES section of a minimal DXF file.

    Every record is encoded before the file is touched, so a record that
    fails validation leaves no partial output behind. Returns the number
    of records written.
    """
    target = parse_version(version)
    writer = TagWriter.to_buffer(target, str(path))
    writer.write_tags(_section_start("HEADER"))
    writer.write_tag(9, "$ACADVER")
    writer.write_tag(1, target.acadver)
    writer.write_tag(0, "ENDSEC")
    writer.write_tags(_section_start("ENTITIES"))
    count = 0
    for record in records:
        encoder = _ENCODERS.get(type(record))
        if encoder is None:
            raise TypeError(f"cannot write records of type {type(record).__name__}")
        encoder(writer, record)
        count += 1
    writer.write_tag(0, "ENDSEC")
    writer.write_tag(0, "EOF")

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(writer.getvalue(), encoding="utf-8")
    logger.debug("wrote %d records to %s (%s)", count, out_path, target.name)
    return count


@dataclass(frozen=True)
class Document:
    path: str
    version: AcadVersion

    def modelspace(self) -> "Layout":
        return Layout(self, "MODELSPACE")

    def paperspace(self) -> "Layout":
        return Layout(self, "PAPERSPACE")

    def export_dxf(self, output_path: str, **kwargs):
        from .convert import to_dxf

        return to_dxf(self, output_path, **kwargs)


@dataclass(frozen=True)
class Layout:
    doc: Document
    name: str

    def iter_entities(self, types: str | Iterable[str] | None = None) -> Iterator[EntityRecord]:
        return self.query(types)

    def query(self, types: str | Iterable[str] | None = None) -> Iterator[EntityRecord]:
        type_set = set(_normalize_types(types))
        if not type_set:
            return
        paperspace = 1 if self.name == "PAPERSPACE" else 0
        for record in _iter_records(self.doc.path, self.doc.version):
            if record.DXFTYPE in type_set and record.paperspace == paperspace:
                yield record


def _iter_records(path: str, version: AcadVersion) -> Iterator[EntityRecord]:
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    reader = TagReader(io.StringIO(text), version, path)
    if not _seek_section(reader, "ENTITIES"):
        return
    while True:
        tag = reader.next_tag()
        if tag is None:
            logger.warning("%s: ENTITIES section is not closed by ENDSEC", path)
            return
        if tag.code != 0:
            logger.warning("%s line %d: stray group code %d outside a record", path, reader.line_number, tag.code)
            continue
        name = tag.value.strip()
        if name in {"ENDSEC", "EOF"}:
            return
        decoder = _DECODERS.get(name)
        if decoder is None:
            logger.debug("%s line %d: skipping unsupported record %s", path, reader.line_number, name)
            _skip_record(reader)
            continue
        yield decoder(reader)


def _detect_version(reader: TagReader) -> AcadVersion:
    if not _seek_section(reader, "HEADER"):
        return AcadVersion.R12
    while True:
        tag = reader.next_tag()
        if tag is None or (tag.code == 0 and tag.value.strip() == "ENDSEC"):
            return AcadVersion.R12
        if tag.code == 9 and tag.value.strip() == "$ACADVER":
            value = reader.next_tag()
            if value is None:
                return AcadVersion.R12
            try:
                return parse_version(value.value)
            except ValueError:
                raise ValueError(f"unsupported DXF version: {value.value.strip()}") from None


def _seek_section(reader: TagReader, section: str) -> bool:
    expect_name = False
    for tag in reader:
        if tag.code == 0 and tag.value.strip() == "SECTION":
            expect_name = True
            continue
        if expect_name and tag.code == 2 and tag.value.strip() == section:
            return True
        expect_name = False
    return False


def _skip_record(reader: TagReader) -> None:
    while True:
        tag = reader.peek()
        if tag is None or tag.code == 0:
            return
        reader.next_tag()


def _section_start(name: str) -> list[Tag]:
    return [Tag(0, "SECTION"), Tag(2, name)]


def _normalize_types(types: str | Iterable[str] | None) -> list[str]:
    """Supported type names selected by ``types``, in request order.

    Names are case-insensitive and may be shell wildcards; ``TABLE`` stands
    for ``ACAD_TABLE``. ``ALL`` or an empty selection means every type.
    """
    if types is None:
        return list(SUPPORTED_ENTITY_TYPES)
    tokens = re.split(r"[,\s]+", types) if isinstance(types, str) else types
    requested = [token.strip().upper() for token in tokens if token and token.strip()]
    requested = [TYPE_ALIASES.get(token, token) for token in requested]
    if not requested or "ALL" in requested:
        return list(SUPPORTED_ENTITY_TYPES)
    selected: dict[str, None] = {}
    for token in requested:
        for name in SUPPORTED_ENTITY_TYPES:
            if fnmatch.fnmatchcase(name, token):
                selected.setdefault(name)
    return list(selected)
