from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from .versions import AcadVersion


class Kind(Enum):
    INT = "int"
    HEX = "hex"
    FLOAT = "float"
    STR = "str"
    FLAG = "flag"


def parse_value(kind: Kind, raw: str) -> Any:
    text = raw.strip()
    if kind is Kind.STR:
        return raw
    if kind is Kind.INT:
        return int(text)
    if kind is Kind.HEX:
        value = int(text, 16)
        if value < 0:
            raise ValueError(f"negative handle {raw!r}")
        return value
    if kind is Kind.FLOAT:
        return float(text)
    if kind is Kind.FLAG:
        return bool(int(text))
    raise ValueError(f"unknown value kind: {kind}")


def format_value(kind: Kind, value: Any) -> str:
    if kind is Kind.STR:
        text = str(value)
        if "\n" in text or "\r" in text:
            raise ValueError(f"line break in string value {text!r}")
        return text
    if kind is Kind.INT:
        return str(int(value))
    if kind is Kind.HEX:
        return f"{int(value):X}"
    if kind is Kind.FLOAT:
        return repr(float(value))
    if kind is Kind.FLAG:
        return "1" if value else "0"
    raise ValueError(f"unknown value kind: {kind}")


@dataclass(frozen=True)
class FieldRule:
    code: int
    field: str
    kind: Kind
    min_version: AcadVersion | None = None
    max_version: AcadVersion | None = None
    # 0-based position among the tags with this code in one record.
    occurrence: int | None = None
    # Repeated code: append to a list field instead of overwriting.
    append: bool = False
    # Component of a tuple field (extrusion vector, face indices).
    index: int | None = None

    def accepts_version(self, version: AcadVersion) -> bool:
        if self.min_version is not None and version < self.min_version:
            return False
        if self.max_version is not None and version > self.max_version:
            return False
        return True


def rule(
    code: int,
    name: str,
    kind: Kind,
    *,
    since: AcadVersion | None = None,
    until: AcadVersion | None = None,
    occurrence: int | None = None,
    append: bool = False,
    index: int | None = None,
) -> FieldRule:
    return FieldRule(
        code=code,
        field=name,
        kind=kind,
        min_version=since,
        max_version=until,
        occurrence=occurrence,
        append=append,
        index=index,
    )


@dataclass(frozen=True, eq=False)
class Schema:
    name: str
    rules: tuple[FieldRule, ...]
    subclass_markers: frozenset[str] = frozenset()
    ranges: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    # Field name -> CodecDefaults attribute used when the field is empty.
    string_defaults: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        by_code: dict[int, list[FieldRule]] = {}
        for item in self.rules:
            by_code.setdefault(item.code, []).append(item)
        object.__setattr__(self, "_by_code", {code: tuple(items) for code, items in by_code.items()})

    def lookup(self, code: int, version: AcadVersion, occurrence: int = 0) -> FieldRule | None:
        # Version first: the same code may name different fields in
        # different releases. Occurrence only decides among live rules.
        live = [item for item in self._by_code.get(code, ()) if item.accepts_version(version)]
        for item in live:
            if item.occurrence is None or item.occurrence == occurrence:
                return item
        return None

    def knows(self, code: int, version: AcadVersion) -> bool:
        return any(item.accepts_version(version) for item in self._by_code.get(code, ()))

    def kind_of(self, name: str) -> Kind | None:
        for item in self.rules:
            if item.field == name:
                return item.kind
        return None

    def extend(
        self,
        name: str,
        rules: Iterable[FieldRule],
        *,
        subclass_markers: Iterable[str] = (),
        ranges: Mapping[str, tuple[int, int]] | None = None,
        string_defaults: Mapping[str, str] | None = None,
        exclude: Iterable[int] = (),
    ) -> "Schema":
        dropped = set(exclude)
        kept = tuple(item for item in self.rules if item.code not in dropped)
        return Schema(
            name=name,
            rules=kept + tuple(rules),
            subclass_markers=self.subclass_markers | frozenset(subclass_markers),
            ranges={**self.ranges, **(ranges or {})},
            string_defaults={**self.string_defaults, **(string_defaults or {})},
        )
