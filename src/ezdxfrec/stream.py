from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Iterable, TextIO

from .errors import StreamError
from .versions import AcadVersion, parse_version


@dataclass(frozen=True)
class Tag:
    code: int
    value: str


class TagReader:
    """Reads (group code, value) pairs from a DXF text stream.

    ``peek`` looks at the next tag without consuming it, which is how record
    decoders stop at the code 0 tag that belongs to the enclosing loop.
    ``next_tag`` returns ``None`` at end of input. Any read failure puts the
    reader into a failed state; every later call raises ``StreamError``.
    """

    def __init__(
        self,
        fp: TextIO,
        version: AcadVersion | str | int = AcadVersion.R2000,
        filename: str = "<stream>",
    ):
        self._fp = fp
        self.version = parse_version(version)
        self.filename = filename
        self.line_number = 0
        self._pending: Tag | None = None
        self._has_pending = False
        self._failure: str | None = None

    @classmethod
    def from_text(
        cls,
        text: str,
        version: AcadVersion | str | int = AcadVersion.R2000,
        filename: str = "<string>",
    ) -> "TagReader":
        return cls(io.StringIO(text), version, filename)

    def peek(self) -> Tag | None:
        if not self._has_pending:
            self._pending = self._read_tag()
            self._has_pending = True
        return self._pending

    def next_tag(self) -> Tag | None:
        tag = self.peek()
        self._pending = None
        self._has_pending = False
        return tag

    def __iter__(self):
        while True:
            tag = self.next_tag()
            if tag is None:
                return
            yield tag

    def _read_tag(self) -> Tag | None:
        if self._failure is not None:
            raise self._error(self._failure)
        code_line = self._readline()
        if not code_line:
            return None
        value_line = self._readline()
        if not value_line:
            raise self._fail("unexpected end of input after group code")
        try:
            code = int(code_line.strip())
        except ValueError:
            raise self._fail(f"invalid group code {code_line.strip()!r}") from None
        return Tag(code, value_line.rstrip("\r\n"))

    def _readline(self) -> str:
        try:
            line = self._fp.readline()
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise self._fail(f"read error: {exc}") from exc
        if line:
            self.line_number += 1
        return line

    def _fail(self, message: str) -> StreamError:
        self._failure = message
        return self._error(message)

    def _error(self, message: str) -> StreamError:
        return StreamError(message, filename=self.filename, line_number=self.line_number)


class TagWriter:
    def __init__(
        self,
        fp: TextIO,
        version: AcadVersion | str | int = AcadVersion.R2000,
        filename: str = "<stream>",
    ):
        self._fp = fp
        self.version = parse_version(version)
        self.filename = filename
        self.line_number = 0

    @classmethod
    def to_buffer(
        cls,
        version: AcadVersion | str | int = AcadVersion.R2000,
        filename: str = "<buffer>",
    ) -> "TagWriter":
        return cls(io.StringIO(), version, filename)

    def getvalue(self) -> str:
        if not isinstance(self._fp, io.StringIO):
            raise TypeError("getvalue() is only available on in-memory writers")
        return self._fp.getvalue()

    def write_tag(self, code: int, value: str) -> None:
        self.write_tags([Tag(code, value)])

    def write_tags(self, tags: Iterable[Tag]) -> None:
        chunk = "".join(f"{tag.code:>3}\n{tag.value}\n" for tag in tags)
        if not chunk:
            return
        try:
            self._fp.write(chunk)
        except (OSError, ValueError) as exc:
            raise StreamError(
                f"write error: {exc}", filename=self.filename, line_number=self.line_number
            ) from exc
        self.line_number += chunk.count("\n")
