from __future__ import annotations

from enum import IntEnum


class AcadVersion(IntEnum):
    R10 = 10
    R11 = 11
    R12 = 12
    R13 = 13
    R14 = 14
    R2000 = 2000
    R2004 = 2004
    R2007 = 2007
    R2010 = 2010
    R2013 = 2013
    R2018 = 2018

    @property
    def acadver(self) -> str:
        return _ACADVER_BY_VERSION[self]


_ACADVER_BY_VERSION = {
    AcadVersion.R10: "AC1006",
    AcadVersion.R11: "AC1009",
    AcadVersion.R12: "AC1009",
    AcadVersion.R13: "AC1012",
    AcadVersion.R14: "AC1014",
    AcadVersion.R2000: "AC1015",
    AcadVersion.R2004: "AC1018",
    AcadVersion.R2007: "AC1021",
    AcadVersion.R2010: "AC1024",
    AcadVersion.R2013: "AC1027",
    AcadVersion.R2018: "AC1032",
}

# AC1009 is shared by R11 and R12; a file that says AC1009 is read as R12.
_VERSION_BY_ACADVER = {
    "AC1006": AcadVersion.R10,
    "AC1009": AcadVersion.R12,
    "AC1012": AcadVersion.R13,
    "AC1014": AcadVersion.R14,
    "AC1015": AcadVersion.R2000,
    "AC1018": AcadVersion.R2004,
    "AC1021": AcadVersion.R2007,
    "AC1024": AcadVersion.R2010,
    "AC1027": AcadVersion.R2013,
    "AC1032": AcadVersion.R2018,
}

SUPPORTED_ACADVER = tuple(sorted(_VERSION_BY_ACADVER))


def parse_version(value: AcadVersion | str | int) -> AcadVersion:
    if isinstance(value, AcadVersion):
        return value
    if isinstance(value, int):
        try:
            return AcadVersion(value)
        except ValueError:
            raise ValueError(f"unsupported DXF version: {value}") from None
    token = str(value).strip().upper()
    if token in _VERSION_BY_ACADVER:
        return _VERSION_BY_ACADVER[token]
    if token in AcadVersion.__members__:
        return AcadVersion[token]
    raise ValueError(f"unsupported DXF version: {value}")
