from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

COLOR_BYBLOCK = 0
COLOR_BYLAYER = 256
MODELSPACE = 0
PAPERSPACE = 1
LINEWEIGHT_BYLAYER = -1


@dataclass(frozen=True)
class CodecDefaults:
    layer: str = "0"
    linetype: str = "BYLAYER"
    text_style: str = "Standard"
    linetype_scale: float = 1.0
    color: int = COLOR_BYLAYER
    lineweight: int = LINEWEIGHT_BYLAYER
    # Format limit for repeated groups (binary chunks, row heights, text
    # chunks, attribute handles). Decoding truncates beyond it.
    max_param: int = 10000
    # Legacy (<= R11) files carry the entity elevation in group 38 only
    # when FLATLAND is set.
    flatland: bool = False


@lru_cache(maxsize=1)
def get_defaults() -> CodecDefaults:
    return CodecDefaults(
        max_param=_env_int("EZDXFREC_MAX_PARAM", CodecDefaults.max_param),
        flatland=_env_flag("EZDXFREC_FLATLAND", CodecDefaults.flatland),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
