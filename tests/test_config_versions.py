from __future__ import annotations

import pytest

from ezdxfrec import config
from ezdxfrec.versions import SUPPORTED_ACADVER, AcadVersion, parse_version


@pytest.fixture(autouse=True)
def _fresh_defaults():
    config.get_defaults.cache_clear()
    yield
    config.get_defaults.cache_clear()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (AcadVersion.R14, AcadVersion.R14),
        (2000, AcadVersion.R2000),
        ("R2010", AcadVersion.R2010),
        ("r13", AcadVersion.R13),
        ("AC1015", AcadVersion.R2000),
        (" ac1032 ", AcadVersion.R2018),
        ("AC1009", AcadVersion.R12),
    ],
)
def test_parse_version(value: object, expected: AcadVersion) -> None:
    assert parse_version(value) is expected


@pytest.mark.parametrize("value", ["AC9999", "R9", 1999, ""])
def test_parse_version_rejects_unknown(value: object) -> None:
    with pytest.raises(ValueError, match="unsupported DXF version"):
        parse_version(value)


def test_acadver_names() -> None:
    assert AcadVersion.R2000.acadver == "AC1015"
    assert AcadVersion.R11.acadver == "AC1009"
    assert "AC1024" in SUPPORTED_ACADVER


def test_versions_are_ordered() -> None:
    assert AcadVersion.R12 < AcadVersion.R13 < AcadVersion.R2000 < AcadVersion.R2018


def test_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EZDXFREC_MAX_PARAM", raising=False)
    monkeypatch.delenv("EZDXFREC_FLATLAND", raising=False)

    defaults = config.get_defaults()

    assert defaults.layer == "0"
    assert defaults.linetype == "BYLAYER"
    assert defaults.text_style == "Standard"
    assert defaults.color == config.COLOR_BYLAYER
    assert defaults.max_param == 10000
    assert defaults.flatland is False


def test_defaults_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EZDXFREC_MAX_PARAM", "16")
    monkeypatch.setenv("EZDXFREC_FLATLAND", "yes")

    defaults = config.get_defaults()

    assert defaults.max_param == 16
    assert defaults.flatland is True


@pytest.mark.parametrize("raw_value", ["many", "0", "-4"])
def test_defaults_reject_bad_max_param(monkeypatch: pytest.MonkeyPatch, raw_value: str) -> None:
    monkeypatch.setenv("EZDXFREC_MAX_PARAM", raw_value)

    with pytest.raises(ValueError, match="EZDXFREC_MAX_PARAM"):
        config.get_defaults()
