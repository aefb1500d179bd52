from __future__ import annotations

import io

import pytest

from ezdxfrec.errors import StreamError
from ezdxfrec.stream import Tag, TagReader, TagWriter
from ezdxfrec.versions import AcadVersion


def test_reader_peeks_without_consuming() -> None:
    reader = TagReader.from_text("  0\nPOLYLINE\n  8\nWalls\n")

    assert reader.next_tag() == Tag(0, "POLYLINE")
    assert reader.line_number == 2
    assert reader.peek() == Tag(8, "Walls")
    assert reader.peek() == Tag(8, "Walls")
    assert reader.next_tag() == Tag(8, "Walls")
    assert reader.next_tag() is None
    assert reader.next_tag() is None


def test_reader_keeps_value_whitespace_and_strips_line_endings() -> None:
    reader = TagReader.from_text("  1\n  padded text  \r\n  8\r\nWalls\r\n")

    assert list(reader) == [Tag(1, "  padded text  "), Tag(8, "Walls")]


def test_reader_reports_truncated_pair_and_stays_failed() -> None:
    reader = TagReader.from_text("  0\nPOLYLINE\n  8\n", filename="broken.dxf")

    assert reader.next_tag() == Tag(0, "POLYLINE")
    with pytest.raises(StreamError, match="unexpected end of input") as excinfo:
        reader.next_tag()
    assert excinfo.value.filename == "broken.dxf"
    assert excinfo.value.line_number == 3
    assert "(in broken.dxf, line 3)" in str(excinfo.value)

    with pytest.raises(StreamError):
        reader.peek()


def test_reader_rejects_non_numeric_group_code() -> None:
    reader = TagReader.from_text("abc\nvalue\n")

    with pytest.raises(StreamError, match="invalid group code 'abc'"):
        reader.next_tag()


def test_reader_wraps_io_errors() -> None:
    class _FailingFile(io.StringIO):
        def readline(self, *args):
            raise OSError("device gone")

    reader = TagReader(_FailingFile(), AcadVersion.R2000, "gone.dxf")

    with pytest.raises(StreamError, match="device gone"):
        reader.next_tag()


def test_reader_accepts_version_names() -> None:
    assert TagReader.from_text("", "AC1024").version is AcadVersion.R2010
    assert TagReader.from_text("", "R14").version is AcadVersion.R14


def test_writer_right_aligns_group_codes() -> None:
    writer = TagWriter.to_buffer(AcadVersion.R2000)

    writer.write_tag(0, "POLYLINE")
    writer.write_tags([Tag(10, "1.5"), Tag(370, "25")])

    assert writer.getvalue() == "  0\nPOLYLINE\n 10\n1.5\n370\n25\n"
    assert writer.line_number == 6


def test_writer_wraps_io_errors() -> None:
    class _FullDisk(io.StringIO):
        def write(self, text):
            raise OSError("no space left")

    writer = TagWriter(_FullDisk(), AcadVersion.R2000, "full.dxf")

    with pytest.raises(StreamError, match="no space left"):
        writer.write_tag(0, "EOF")


def test_writer_getvalue_requires_memory_buffer(tmp_path) -> None:
    with open(tmp_path / "out.dxf", "w", encoding="utf-8") as fp:
        writer = TagWriter(fp)
        writer.write_tag(0, "EOF")
        with pytest.raises(TypeError):
            writer.getvalue()
