from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .chain import ChainManager, append_node, chain_from, iter_chain
from .codec import Kind, Schema, rule
from .config import COLOR_BYLAYER, get_defaults
from .decoder import (
    APP_GROUP,
    COMMENT,
    SUBCLASS_MARKER,
    DecodeState,
    apply_tag,
    decode_staged,
    finish_record,
    warn_unknown,
)
from .encoder import (
    TagBuffer,
    encode_record,
    report_count_mismatch,
    repair_string_defaults,
    require_valid,
    write_entity_header,
    write_extrusion,
)
from .entity import ENTITY_SCHEMA, EntityRecord, Point3D, Record
from .errors import ValidationError
from .stream import TagReader, TagWriter
from .versions import AcadVersion

logger = logging.getLogger(__name__)

CELL_TEXT = 1
CELL_BLOCK = 2
CELL_START = 171
TEXT_CHUNK_SIZE = 250

CELL_SCHEMA = Schema(
    name="CELL",
    rules=(
        rule(1, "text", Kind.STR),
        rule(2, "text_chunks", Kind.STR, append=True),
        rule(3, "text_chunks", Kind.STR, append=True),
        rule(7, "text_style_name", Kind.STR),
        rule(63, "color_bg", Kind.INT),
        rule(64, "color_fg", Kind.INT),
        rule(65, "border_color_right", Kind.INT),
        rule(66, "border_color_bottom", Kind.INT),
        rule(68, "border_color_left", Kind.INT),
        rule(69, "border_color_top", Kind.INT),
        rule(91, "override_flag", Kind.INT, since=AcadVersion.R2007),
        rule(140, "text_height", Kind.FLOAT),
        rule(144, "block_scale", Kind.FLOAT),
        rule(145, "block_rotation", Kind.FLOAT),
        rule(170, "alignment", Kind.INT),
        rule(171, "cell_type", Kind.INT),
        rule(172, "flag", Kind.INT),
        rule(173, "merged", Kind.INT),
        rule(174, "autofit", Kind.INT),
        rule(175, "border_width", Kind.FLOAT),
        rule(176, "border_height", Kind.FLOAT),
        rule(177, "override", Kind.INT),
        rule(178, "virtual_edge", Kind.INT),
        rule(179, "number_of_block_attdefs", Kind.INT),
        rule(275, "border_lineweight_right", Kind.INT),
        rule(276, "border_lineweight_bottom", Kind.INT),
        rule(278, "border_lineweight_left", Kind.INT),
        rule(279, "border_lineweight_top", Kind.INT),
        rule(283, "color_fill_override", Kind.INT),
        rule(285, "border_visibility_override_right", Kind.INT),
        rule(286, "border_visibility_override_bottom", Kind.INT),
        rule(288, "border_visibility_override_left", Kind.INT),
        rule(289, "border_visibility_override_top", Kind.INT),
        rule(300, "attdef_text_string", Kind.STR),
        rule(331, "attdef_handles", Kind.STR, append=True),
        rule(340, "block_table_record_handle", Kind.STR),
        rule(344, "field_object_handle", Kind.STR),
    ),
    ranges={"cell_type": (CELL_TEXT, CELL_BLOCK), "autofit": (0, 1), "merged": (0, 1)},
    string_defaults={"text_style_name": "text_style"},
)

# Code 92 is the proxy graphics size in R2000..R2007 and the column count
# everywhere else; in R2000..R2007 the column count is the second 92.
TABLE_SCHEMA = ENTITY_SCHEMA.extend(
    "ACAD_TABLE",
    (
        rule(2, "block_name", Kind.STR),
        rule(7, "table_text_style_name", Kind.STR),
        rule(10, "x0", Kind.FLOAT),
        rule(20, "y0", Kind.FLOAT),
        rule(30, "z0", Kind.FLOAT),
        rule(11, "x1", Kind.FLOAT),
        rule(21, "y1", Kind.FLOAT),
        rule(31, "z1", Kind.FLOAT),
        rule(40, "horizontal_cell_margin", Kind.FLOAT),
        rule(41, "vertical_cell_margin", Kind.FLOAT),
        rule(63, "table_cell_color_bg", Kind.INT),
        rule(64, "table_cell_color_fg", Kind.INT),
        rule(65, "table_cell_border_color_horizontal", Kind.INT),
        rule(66, "table_cell_border_color_bottom", Kind.INT),
        rule(68, "table_cell_border_color_vertical", Kind.INT),
        rule(69, "table_cell_border_color_right", Kind.INT),
        rule(70, "flow_direction", Kind.INT),
        rule(90, "table_value_flag", Kind.INT),
        rule(91, "number_of_rows", Kind.INT),
        rule(92, "number_of_columns", Kind.INT, until=AcadVersion.R14),
        rule(92, "graphics_data_size", Kind.INT, since=AcadVersion.R2000, until=AcadVersion.R2007, occurrence=0),
        rule(92, "number_of_columns", Kind.INT, since=AcadVersion.R2000, until=AcadVersion.R2007, occurrence=1),
        rule(92, "number_of_columns", Kind.INT, since=AcadVersion.R2010),
        rule(93, "override_flag", Kind.INT),
        rule(94, "border_color_override_flag", Kind.INT),
        rule(95, "border_lineweight_override_flag", Kind.INT),
        rule(96, "border_visibility_override_flag", Kind.INT),
        rule(140, "table_text_height", Kind.FLOAT),
        rule(141, "row_heights", Kind.FLOAT, append=True),
        rule(142, "column_widths", Kind.FLOAT, append=True),
        rule(170, "table_cell_alignment", Kind.INT),
        rule(274, "table_cell_border_lineweight_right", Kind.INT),
        rule(280, "table_data_version", Kind.INT, occurrence=0),
        rule(280, "suppress_table_title", Kind.INT, occurrence=1),
        rule(281, "suppress_header_row", Kind.INT),
        rule(283, "table_cell_color_fill_override", Kind.INT),
        rule(342, "tablestyle_object_pointer", Kind.STR),
        rule(343, "owning_block_pointer", Kind.STR),
    ),
    subclass_markers=("AcDbBlockReference", "AcDbTable"),
    ranges={
        "flow_direction": (0, 1),
        "suppress_table_title": (0, 1),
        "suppress_header_row": (0, 1),
    },
    string_defaults={"table_text_style_name": "text_style"},
    exclude=(92,),
)


@dataclass
class TableCell(Record):
    text: str = ""
    text_chunks: list[str] = field(default_factory=list)
    text_style_name: str = ""
    color_bg: int = 0
    color_fg: int = 0
    border_color_right: int = 0
    border_color_bottom: int = 0
    border_color_left: int = 0
    border_color_top: int = 0
    override_flag: int = 0
    text_height: float = 0.0
    block_scale: float = 0.0
    block_rotation: float = 0.0
    alignment: int = 0
    cell_type: int = 0
    flag: int = 0
    merged: int = 0
    autofit: int = 0
    border_width: float = 0.0
    border_height: float = 0.0
    override: int = 0
    virtual_edge: int = 0
    number_of_block_attdefs: int = 0
    border_lineweight_right: int = 0
    border_lineweight_bottom: int = 0
    border_lineweight_left: int = 0
    border_lineweight_top: int = 0
    color_fill_override: int = 0
    border_visibility_override_right: int = 0
    border_visibility_override_bottom: int = 0
    border_visibility_override_left: int = 0
    border_visibility_override_top: int = 0
    attdef_text_string: str = ""
    attdef_handles: list[str] = field(default_factory=list)
    block_table_record_handle: str = ""
    field_object_handle: str = ""

    DXFTYPE = "CELL"
    SCHEMA = CELL_SCHEMA

    @classmethod
    def schema_defaults(cls) -> dict[str, Any]:
        return {
            "text_style_name": get_defaults().text_style,
            "color_fg": COLOR_BYLAYER,
            "border_color_right": COLOR_BYLAYER,
            "border_color_bottom": COLOR_BYLAYER,
            "border_color_left": COLOR_BYLAYER,
            "border_color_top": COLOR_BYLAYER,
            "text_height": 1.0,
            "cell_type": CELL_TEXT,
            "block_scale": 1.0,
        }

    @property
    def is_text(self) -> bool:
        return self.cell_type == CELL_TEXT

    @property
    def is_block(self) -> bool:
        return self.cell_type == CELL_BLOCK

    def full_text(self) -> str:
        return "".join(self.text_chunks) + self.text

    def set_text(self, text: str) -> "TableCell":
        """Store ``text``, splitting it into 250 character chunks.

        The last chunk goes to group code 1, the others to the repeated
        continuation groups that precede it.
        """
        self.ensure_live()
        if "\n" in text or "\r" in text:
            raise ValidationError("text", text, "line breaks are not allowed")
        chunks = [text[i : i + TEXT_CHUNK_SIZE] for i in range(0, len(text), TEXT_CHUNK_SIZE)] or [""]
        if len(chunks) - 1 > get_defaults().max_param:
            raise ValidationError("text", text, "more continuation chunks than the format allows")
        self.text_chunks = chunks[:-1]
        self.text = chunks[-1]
        return self

    def attdef_issue(self) -> str | None:
        if self.number_of_block_attdefs == len(self.attdef_handles):
            return None
        return (
            f"number_of_block_attdefs={self.number_of_block_attdefs} "
            f"but {len(self.attdef_handles)} attdef handles are stored"
        )

    def _check_field(self, name: str, value: Any) -> str | None:
        if name == "text" and len(value) > TEXT_CHUNK_SIZE:
            return "longer than one chunk, use set_text()"
        if name == "text_chunks" and any(len(chunk) > TEXT_CHUNK_SIZE for chunk in value):
            return f"chunks are limited to {TEXT_CHUNK_SIZE} characters"
        if name == "text_style_name" and not value:
            return "must not be empty"
        return None


@dataclass
class Table(EntityRecord):
    block_name: str = ""
    table_text_style_name: str = ""
    x0: float = 0.0
    y0: float = 0.0
    z0: float = 0.0
    x1: float = 0.0
    y1: float = 0.0
    z1: float = 0.0
    horizontal_cell_margin: float = 0.0
    vertical_cell_margin: float = 0.0
    table_cell_color_bg: int = 0
    table_cell_color_fg: int = 0
    table_cell_border_color_horizontal: int = 0
    table_cell_border_color_bottom: int = 0
    table_cell_border_color_vertical: int = 0
    table_cell_border_color_right: int = 0
    flow_direction: int = 0
    table_value_flag: int = 0
    number_of_rows: int = 0
    number_of_columns: int = 0
    override_flag: int = 0
    border_color_override_flag: int = 0
    border_lineweight_override_flag: int = 0
    border_visibility_override_flag: int = 0
    table_text_height: float = 0.0
    row_heights: list[float] = field(default_factory=list)
    column_widths: list[float] = field(default_factory=list)
    table_cell_alignment: int = 0
    table_cell_border_lineweight_right: int = 0
    table_data_version: int = 0
    suppress_table_title: int = 0
    suppress_header_row: int = 0
    table_cell_color_fill_override: int = 0
    tablestyle_object_pointer: str = ""
    owning_block_pointer: str = ""
    cells: TableCell | None = field(default=None, repr=False)

    DXFTYPE = "ACAD_TABLE"
    SCHEMA = TABLE_SCHEMA
    OWNED = ("cells",)

    @classmethod
    def schema_defaults(cls) -> dict[str, Any]:
        return {
            **super().schema_defaults(),
            "table_text_style_name": get_defaults().text_style,
            "x1": 1.0,
            "table_cell_border_color_horizontal": COLOR_BYLAYER,
            "table_cell_border_color_bottom": COLOR_BYLAYER,
            "table_cell_border_color_vertical": COLOR_BYLAYER,
            "table_cell_border_color_right": COLOR_BYLAYER,
        }

    @property
    def insert(self) -> Point3D:
        return (self.x0, self.y0, self.z0)

    @property
    def direction(self) -> Point3D:
        return (self.x1, self.y1, self.z1)

    def iter_cells(self):
        return iter_chain(self.cells)

    def consistency_issues(self) -> list[str]:
        """Count fields that disagree with the data stored next to them."""
        issues = []
        if self.number_of_rows != len(self.row_heights):
            issues.append(
                f"number_of_rows={self.number_of_rows} but {len(self.row_heights)} row heights are stored"
            )
        if self.number_of_columns != len(self.column_widths):
            issues.append(
                f"number_of_columns={self.number_of_columns} "
                f"but {len(self.column_widths)} column widths are stored"
            )
        for position, cell in enumerate(iter_chain(self.cells)):
            problem = cell.attdef_issue()
            if problem is not None:
                issues.append(f"cell {position}: {problem}")
        return issues

    def _check_field(self, name: str, value: Any) -> str | None:
        if name in {"number_of_rows", "number_of_columns"} and value < 0:
            return "must not be negative"
        if name == "table_text_style_name" and not value:
            return "must not be empty"
        return super()._check_field(name, value)

    def _extra_issues(self) -> list[str]:
        issues = []
        for name in ("number_of_rows", "number_of_columns"):
            if getattr(self, name) < 0:
                issues.append(f"{name}={getattr(self, name)} is negative")
        return issues


CELLS: ChainManager[TableCell] = ChainManager(TableCell)
TABLES: ChainManager[Table] = ChainManager(Table, owned={"cells": CELLS})


def new_cell() -> TableCell:
    return CELLS.new()


def new_table() -> Table:
    return TABLES.new()


def add_cell(table: Table, text: str | None = None, **changes: Any) -> TableCell:
    table.ensure_live()
    cell = new_cell()
    cell.update(**changes)
    if text is not None:
        cell.set_text(text)
    table.cells = append_node(table.cells, cell)
    return cell


def decode_table(reader: TagReader, table: Table | None = None) -> Table:
    """Decode an ACAD_TABLE record and its cells.

    The reader must be positioned just after the ``0/ACAD_TABLE`` tag. Every
    group 171 opens a new cell. Once the first cell is open, codes the cell
    layout does not know are dropped with a warning instead of overwriting
    table fields.
    """
    return decode_staged(reader, table, TABLES, _decode_table_body, "ACAD_TABLE")


def _decode_table_body(reader: TagReader, table: Table) -> None:
    state = DecodeState()
    cells: list[TableCell] = []
    cell: TableCell | None = None
    cell_state = DecodeState()
    try:
        while True:
            tag = reader.peek()
            if tag is None or tag.code == 0:
                break
            reader.next_tag()
            if tag.code == CELL_START:
                if cell is not None:
                    finish_record(CELL_SCHEMA, cell, reader)
                cell = new_cell()
                cell_state = DecodeState()
                cells.append(cell)
            if cell is not None:
                if CELL_SCHEMA.knows(tag.code, reader.version):
                    apply_tag(CELL_SCHEMA, cell, tag, cell_state, reader)
                    continue
                if tag.code not in (SUBCLASS_MARKER, APP_GROUP, COMMENT):
                    logger.warning(
                        "ACAD_TABLE: group code %d (value %r) inside cell %d is not a cell field, "
                        "dropped (%s line %d)",
                        tag.code,
                        tag.value,
                        len(cells) - 1,
                        reader.filename,
                        reader.line_number,
                    )
                    continue
            if not apply_tag(TABLE_SCHEMA, table, tag, state, reader):
                warn_unknown(TABLE_SCHEMA, tag, reader)
    finally:
        table.cells = chain_from(cells)
    if cell is not None:
        finish_record(CELL_SCHEMA, cell, reader)
    finish_record(TABLE_SCHEMA, table, reader)
    for issue in table.consistency_issues():
        logger.warning("ACAD_TABLE: %s (%s line %d)", issue, reader.filename, reader.line_number)


def encode_cell(writer: TagWriter, cell: TableCell) -> int:
    require_valid([cell], "CELL")
    repair_string_defaults(cell)
    issue = cell.attdef_issue()
    if issue is not None:
        logger.warning("CELL: %s", issue)
    return encode_record(writer, cell, _build_cell)


def encode_table(writer: TagWriter, table: Table) -> int:
    table.ensure_live()
    cells = list(iter_chain(table.cells))
    require_valid([table, *cells], "ACAD_TABLE")
    for record in (table, *cells):
        repair_string_defaults(record)
    report_count_mismatch("ACAD_TABLE", "number_of_rows", table.number_of_rows, len(table.row_heights))
    report_count_mismatch(
        "ACAD_TABLE", "number_of_columns", table.number_of_columns, len(table.column_widths)
    )
    for cell in cells:
        report_count_mismatch(
            "CELL", "number_of_block_attdefs", cell.number_of_block_attdefs, len(cell.attdef_handles)
        )
    return encode_record(writer, table, _build_table)


def free_cell(cell: TableCell) -> None:
    CELLS.free_one(cell)


def free_cell_chain(head: TableCell | None) -> int:
    return CELLS.free_chain(head)


def free_table(table: Table) -> None:
    TABLES.free_one(table)


def free_table_chain(head: Table | None) -> int:
    return TABLES.free_chain(head)


def release_cells(table: Table) -> int:
    count = CELLS.free_chain(table.cells) if table.cells is not None else 0
    table.cells = None
    return count


def _build_cell(buf: TagBuffer, cell: TableCell) -> None:
    buf.tag(171, Kind.INT, cell.cell_type)
    buf.tag(172, Kind.INT, cell.flag)
    buf.tag(173, Kind.INT, cell.merged)
    buf.tag_if(cell.autofit != 0, 174, Kind.INT, cell.autofit)
    buf.tag_if(cell.border_width != 0.0, 175, Kind.FLOAT, cell.border_width)
    buf.tag_if(cell.border_height != 0.0, 176, Kind.FLOAT, cell.border_height)
    buf.tag_if(cell.override != 0, 177, Kind.INT, cell.override)
    buf.tag_if(cell.virtual_edge != 0, 178, Kind.INT, cell.virtual_edge)
    buf.tag_if(buf.since(AcadVersion.R2007), 91, Kind.INT, cell.override_flag)
    buf.tag_if(cell.block_rotation != 0.0, 145, Kind.FLOAT, cell.block_rotation)
    if cell.is_text:
        buf.tag_if(bool(cell.field_object_handle), 344, Kind.STR, cell.field_object_handle)
        buf.repeat(2, Kind.STR, cell.text_chunks)
        buf.tag(1, Kind.STR, cell.text)
    else:
        buf.tag_if(bool(cell.block_table_record_handle), 340, Kind.STR, cell.block_table_record_handle)
        buf.tag(144, Kind.FLOAT, cell.block_scale)
        buf.tag(179, Kind.INT, cell.number_of_block_attdefs)
        buf.repeat(331, Kind.STR, cell.attdef_handles)
        buf.tag_if(bool(cell.attdef_text_string), 300, Kind.STR, cell.attdef_text_string)
    buf.tag_if(cell.text_style_name != get_defaults().text_style, 7, Kind.STR, cell.text_style_name)
    buf.tag_if(cell.text_height != 1.0, 140, Kind.FLOAT, cell.text_height)
    buf.tag_if(cell.alignment != 0, 170, Kind.INT, cell.alignment)
    buf.tag_if(cell.color_bg != 0, 63, Kind.INT, cell.color_bg)
    for code, value in (
        (64, cell.color_fg),
        (65, cell.border_color_right),
        (66, cell.border_color_bottom),
        (68, cell.border_color_left),
        (69, cell.border_color_top),
    ):
        buf.tag_if(value != COLOR_BYLAYER, code, Kind.INT, value)
    for code, value in (
        (275, cell.border_lineweight_right),
        (276, cell.border_lineweight_bottom),
        (278, cell.border_lineweight_left),
        (279, cell.border_lineweight_top),
        (283, cell.color_fill_override),
        (285, cell.border_visibility_override_right),
        (286, cell.border_visibility_override_bottom),
        (288, cell.border_visibility_override_left),
        (289, cell.border_visibility_override_top),
    ):
        buf.tag_if(value != 0, code, Kind.INT, value)


def _build_table(buf: TagBuffer, table: Table) -> None:
    defaults = get_defaults()
    write_entity_header(
        buf,
        table,
        force_graphics_size=buf.since(AcadVersion.R2000) and buf.until(AcadVersion.R2007),
    )
    buf.marker("AcDbBlockReference")
    buf.tag(2, Kind.STR, table.block_name)
    buf.tag(10, Kind.FLOAT, table.x0)
    buf.tag(20, Kind.FLOAT, table.y0)
    buf.tag(30, Kind.FLOAT, table.z0)
    buf.tag_if(table.thickness != 0.0, 39, Kind.FLOAT, table.thickness)
    write_extrusion(buf, table)
    buf.marker("AcDbTable")
    buf.tag(280, Kind.INT, table.table_data_version)
    buf.tag(342, Kind.STR, table.tablestyle_object_pointer)
    buf.tag(343, Kind.STR, table.owning_block_pointer)
    buf.tag(11, Kind.FLOAT, table.x1)
    buf.tag(21, Kind.FLOAT, table.y1)
    buf.tag(31, Kind.FLOAT, table.z1)
    buf.tag(90, Kind.INT, table.table_value_flag)
    buf.tag(91, Kind.INT, table.number_of_rows)
    buf.tag(92, Kind.INT, table.number_of_columns)
    buf.tag(93, Kind.INT, table.override_flag)
    buf.tag(94, Kind.INT, table.border_color_override_flag)
    buf.tag(95, Kind.INT, table.border_lineweight_override_flag)
    buf.tag(96, Kind.INT, table.border_visibility_override_flag)
    buf.repeat(141, Kind.FLOAT, table.row_heights)
    buf.repeat(142, Kind.FLOAT, table.column_widths)
    buf.tag_if(table.table_text_style_name != defaults.text_style, 7, Kind.STR, table.table_text_style_name)
    buf.tag_if(table.horizontal_cell_margin != 0.0, 40, Kind.FLOAT, table.horizontal_cell_margin)
    buf.tag_if(table.vertical_cell_margin != 0.0, 41, Kind.FLOAT, table.vertical_cell_margin)
    for code, value in (
        (65, table.table_cell_border_color_horizontal),
        (66, table.table_cell_border_color_bottom),
        (68, table.table_cell_border_color_vertical),
        (69, table.table_cell_border_color_right),
    ):
        buf.tag_if(value != COLOR_BYLAYER, code, Kind.INT, value)
    for code, value in (
        (63, table.table_cell_color_bg),
        (64, table.table_cell_color_fg),
        (70, table.flow_direction),
        (170, table.table_cell_alignment),
        (274, table.table_cell_border_lineweight_right),
        (283, table.table_cell_color_fill_override),
    ):
        buf.tag_if(value != 0, code, Kind.INT, value)
    buf.tag_if(table.table_text_height != 0.0, 140, Kind.FLOAT, table.table_text_height)
    buf.tag_if(table.suppress_table_title != 0, 280, Kind.INT, table.suppress_table_title)
    buf.tag_if(table.suppress_header_row != 0, 281, Kind.INT, table.suppress_header_row)
    for cell in iter_chain(table.cells):
        _build_cell(buf, cell)
