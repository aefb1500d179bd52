from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from .codec import Kind, Schema, rule
from .config import COLOR_BYLAYER, get_defaults
from .errors import ChainError, ValidationError
from .versions import AcadVersion

logger = logging.getLogger(__name__)

Point3D = tuple[float, float, float]

UNASSIGNED = -1
DEFAULT_EXTRUSION: Point3D = (0.0, 0.0, 1.0)

ENTITY_SCHEMA = Schema(
    name="ENTITY",
    rules=(
        rule(5, "identifier", Kind.HEX),
        rule(6, "linetype", Kind.STR),
        rule(8, "layer", Kind.STR),
        rule(38, "elevation", Kind.FLOAT, until=AcadVersion.R11),
        rule(39, "thickness", Kind.FLOAT),
        rule(48, "linetype_scale", Kind.FLOAT, since=AcadVersion.R13),
        rule(60, "visibility", Kind.INT),
        rule(62, "color", Kind.INT),
        rule(67, "paperspace", Kind.INT),
        rule(92, "graphics_data_size", Kind.INT, since=AcadVersion.R2000, until=AcadVersion.R2007),
        rule(160, "graphics_data_size", Kind.INT, since=AcadVersion.R2010),
        rule(210, "extrusion", Kind.FLOAT, index=0),
        rule(220, "extrusion", Kind.FLOAT, index=1),
        rule(230, "extrusion", Kind.FLOAT, index=2),
        rule(284, "shadow_mode", Kind.INT, since=AcadVersion.R2007),
        rule(310, "binary_graphics_data", Kind.STR, since=AcadVersion.R2000, append=True),
        rule(330, "soft_owner_handle", Kind.STR),
        rule(347, "material", Kind.STR, since=AcadVersion.R2007),
        rule(360, "hard_owner_handle", Kind.STR),
        rule(370, "lineweight", Kind.INT, since=AcadVersion.R2000),
        rule(390, "plot_style_name", Kind.STR, since=AcadVersion.R2000),
        rule(420, "color_value", Kind.INT, since=AcadVersion.R2004),
        rule(430, "color_name", Kind.STR, since=AcadVersion.R2004),
        rule(440, "transparency", Kind.INT, since=AcadVersion.R2004),
    ),
    subclass_markers=frozenset({"AcDbEntity"}),
    ranges={
        "visibility": (0, 1),
        "paperspace": (0, 1),
        "shadow_mode": (0, 3),
        "lineweight": (-3, 211),
    },
    string_defaults={"layer": "layer", "linetype": "linetype"},
)


@dataclass
class Record:
    next: "Record | None" = field(default=None, repr=False)
    _freed: bool = field(default=False, init=False, repr=False, compare=False)

    DXFTYPE: ClassVar[str] = ""
    SCHEMA: ClassVar[Schema] = ENTITY_SCHEMA
    # Attributes holding an owned sub-record chain.
    OWNED: ClassVar[tuple[str, ...]] = ()

    @property
    def freed(self) -> bool:
        return self._freed

    @classmethod
    def schema_defaults(cls) -> dict[str, Any]:
        return {}

    def init_defaults(self) -> "Record":
        """Reset every data field to its schema default.

        Chain links (``next`` and owned sub-chains) are left alone; they
        are managed by ``ChainManager``.
        """
        self.ensure_live()
        zero = type(self)()
        for item in fields(self):
            if item.name.startswith("_") or item.name == "next" or item.name in self.OWNED:
                continue
            setattr(self, item.name, getattr(zero, item.name))
        for name, value in self.schema_defaults().items():
            setattr(self, name, _copy_value(value))
        return self

    def ensure_live(self) -> None:
        if self._freed:
            raise ChainError(f"{self.DXFTYPE or type(self).__name__} record was already freed")

    def update(self, **changes: Any) -> "Record":
        self.ensure_live()
        for name, value in changes.items():
            self._validate(name, value)
        for name, value in changes.items():
            if name == "color" and value < 0:
                logger.warning(
                    "%s: negative color %d turns the entity off", self.DXFTYPE, value
                )
            setattr(self, name, _copy_value(value))
        return self

    def range_issues(self) -> list[str]:
        issues = []
        for name, (low, high) in self.SCHEMA.ranges.items():
            value = getattr(self, name, None)
            if value is None:
                continue
            if not low <= value <= high:
                issues.append(f"{name}={value} is outside {low}..{high}")
        issues.extend(self._extra_issues())
        return issues

    def apply_string_defaults(self) -> list[str]:
        defaults = get_defaults()
        repaired = []
        for name, attr in self.SCHEMA.string_defaults.items():
            if not getattr(self, name):
                setattr(self, name, getattr(defaults, attr))
                repaired.append(name)
        return repaired

    def _extra_issues(self) -> list[str]:
        return []

    def _check_field(self, name: str, value: Any) -> str | None:
        return None

    def _validate(self, name: str, value: Any) -> None:
        names = {item.name for item in fields(self) if not item.name.startswith("_")}
        if name not in names or name == "next":
            raise ValidationError(name, value, f"not a settable field of {self.DXFTYPE}")
        if name in self.OWNED:
            raise ValidationError(name, value, "owned chains are changed through the chain helpers")
        rules = [item for item in self.SCHEMA.rules if item.field == name]
        if rules:
            first = rules[0]
            if first.append:
                if not isinstance(value, (list, tuple)):
                    raise ValidationError(name, value, "expected a sequence")
                for element in value:
                    _check_kind(name, first.kind, element)
                if len(value) > get_defaults().max_param:
                    raise ValidationError(name, value, "more elements than the format allows")
            elif first.index is not None:
                width = max(item.index or 0 for item in rules) + 1
                if not isinstance(value, (list, tuple)) or len(value) != width:
                    raise ValidationError(name, value, f"expected {width} components")
                for element in value:
                    _check_kind(name, first.kind, element)
            else:
                _check_kind(name, first.kind, value)
                if first.kind is Kind.HEX and value < UNASSIGNED:
                    raise ValidationError(name, value, "handle must be -1 (unassigned) or positive")
        bounds = self.SCHEMA.ranges.get(name)
        if bounds is not None and not bounds[0] <= value <= bounds[1]:
            raise ValidationError(name, value, f"out of range {bounds[0]}..{bounds[1]}")
        problem = self._check_field(name, value)
        if problem is not None:
            raise ValidationError(name, value, problem)


@dataclass
class EntityRecord(Record):
    identifier: int = 0
    linetype: str = ""
    layer: str = ""
    elevation: float = 0.0
    thickness: float = 0.0
    linetype_scale: float = 0.0
    visibility: int = 0
    color: int = 0
    paperspace: int = 0
    extrusion: Point3D = (0.0, 0.0, 0.0)
    soft_owner_handle: str = ""
    hard_owner_handle: str = ""
    lineweight: int = 0
    plot_style_name: str = ""
    color_value: int = 0
    color_name: str = ""
    transparency: int = 0
    material: str = ""
    shadow_mode: int = 0
    graphics_data_size: int = 0
    binary_graphics_data: list[str] = field(default_factory=list)

    @classmethod
    def schema_defaults(cls) -> dict[str, Any]:
        defaults = get_defaults()
        return {
            "identifier": UNASSIGNED,
            "linetype": defaults.linetype,
            "layer": defaults.layer,
            "linetype_scale": defaults.linetype_scale,
            "color": defaults.color,
            "lineweight": defaults.lineweight,
            "color_value": UNASSIGNED,
            "extrusion": DEFAULT_EXTRUSION,
        }

    @property
    def handle(self) -> int | None:
        return None if self.identifier == UNASSIGNED else self.identifier

    @property
    def is_paperspace(self) -> bool:
        return self.paperspace == 1

    @property
    def is_bylayer_color(self) -> bool:
        return self.color == COLOR_BYLAYER

    def _check_field(self, name: str, value: Any) -> str | None:
        if name == "graphics_data_size" and value < 0:
            return "must not be negative"
        if name in {"layer", "linetype"} and not value:
            return "must not be empty"
        return None


def _check_kind(name: str, kind: Kind, value: Any) -> None:
    if kind in {Kind.INT, Kind.HEX}:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(name, value, "expected an integer")
    elif kind is Kind.FLOAT:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(name, value, "expected a number")
    elif kind is Kind.STR:
        if not isinstance(value, str):
            raise ValidationError(name, value, "expected a string")
        if "\n" in value or "\r" in value:
            raise ValidationError(name, value, "line breaks are not allowed")
    elif kind is Kind.FLAG:
        if value not in (0, 1):
            raise ValidationError(name, value, "expected a boolean")


def _copy_value(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, tuple):
        return tuple(value)
    return value
