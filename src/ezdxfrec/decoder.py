from __future__ import annotations

import copy
import logging
from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Callable, TypeVar

from .chain import ChainManager
from .codec import FieldRule, Schema, parse_value
from .config import get_defaults
from .entity import Record
from .errors import DecodeError, StreamError
from .stream import Tag, TagReader
from .versions import AcadVersion

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

SUBCLASS_MARKER = 100
APP_GROUP = 102
COMMENT = 999


@dataclass
class DecodeState:
    occurrences: Counter = field(default_factory=Counter)
    truncated: set[str] = field(default_factory=set)


def apply_tag(schema: Schema, record: Record, tag: Tag, state: DecodeState, reader: TagReader) -> bool:
    """Store one tag into ``record``; False when the schema has no rule for it."""
    code = tag.code
    occurrence = state.occurrences[code]
    state.occurrences[code] += 1

    if code == SUBCLASS_MARKER and reader.version >= AcadVersion.R13:
        marker = tag.value.strip()
        if marker not in schema.subclass_markers:
            logger.warning(
                "%s: unexpected subclass marker %r in %s line %d",
                schema.name,
                marker,
                reader.filename,
                reader.line_number,
            )
        return True
    if code == APP_GROUP:
        return True
    if code == COMMENT:
        logger.info("DXF comment: %s", tag.value)
        return True

    target = schema.lookup(code, reader.version, occurrence)
    if target is None:
        return False
    try:
        value = parse_value(target.kind, tag.value)
    except ValueError:
        logger.warning(
            "%s: malformed value %r for group %d (%s) in %s line %d",
            schema.name,
            tag.value,
            code,
            target.field,
            reader.filename,
            reader.line_number,
        )
        return True
    _store(schema, record, target, value, state, reader)
    return True


def warn_unknown(schema: Schema, tag: Tag, reader: TagReader) -> None:
    logger.warning(
        "%s: unknown group code %d (value %r) in %s line %d",
        schema.name,
        tag.code,
        tag.value,
        reader.filename,
        reader.line_number,
    )


def decode_record(
    reader: TagReader,
    schema: Schema,
    record: R,
    state: DecodeState | None = None,
) -> R:
    """Decode tags into ``record`` up to (not including) the next code 0 tag."""
    state = state if state is not None else DecodeState()
    while True:
        tag = reader.peek()
        if tag is None or tag.code == 0:
            break
        reader.next_tag()
        if not apply_tag(schema, record, tag, state, reader):
            warn_unknown(schema, tag, reader)
    finish_record(schema, record, reader)
    return record


def finish_record(schema: Schema, record: Record, reader: TagReader) -> None:
    record.apply_string_defaults()
    for issue in record.range_issues():
        logger.warning(
            "%s: %s (record ending in %s line %d)",
            schema.name,
            issue,
            reader.filename,
            reader.line_number,
        )


def decode_staged(
    reader: TagReader,
    record: R | None,
    manager: ChainManager[R],
    body: Callable[[TagReader, R], None],
    label: str,
) -> R:
    """Run ``body`` on a working copy and commit it only when decoding succeeds.

    ``body`` links every sub-record it allocates onto the working record, so
    a stream failure can hand them all back to their managers.
    """
    if record is None:
        working = manager.new()
    else:
        record.ensure_live()
        for attr in record.OWNED:
            if getattr(record, attr) is not None:
                raise DecodeError(f"{label}: target record still owns a {attr} chain, free it first")
        working = _stage(record)
    try:
        body(reader, working)
    except StreamError as exc:
        if record is None:
            manager.free_chain(working)
        else:
            manager.release_owned(working)
        raise DecodeError(f"failed to decode {label}: {exc}") from exc
    if record is None:
        return working
    for item in fields(record):
        if item.name.startswith("_") or item.name == "next":
            continue
        setattr(record, item.name, getattr(working, item.name))
    return record


def _stage(record: R) -> R:
    working = copy.copy(record)
    for item in fields(record):
        value = getattr(record, item.name)
        if isinstance(value, list):
            setattr(working, item.name, list(value))
    working.next = None
    return working


def _store(
    schema: Schema,
    record: Record,
    target: FieldRule,
    value: object,
    state: DecodeState,
    reader: TagReader,
) -> None:
    if target.append:
        values = getattr(record, target.field)
        if len(values) >= get_defaults().max_param:
            if target.field not in state.truncated:
                state.truncated.add(target.field)
                logger.warning(
                    "%s: more than %d %s entries, extra values dropped (%s line %d)",
                    schema.name,
                    get_defaults().max_param,
                    target.field,
                    reader.filename,
                    reader.line_number,
                )
            return
        values.append(value)
        return
    if target.index is not None:
        components = list(getattr(record, target.field))
        components[target.index] = value
        setattr(record, target.field, tuple(components))
        return
    setattr(record, target.field, value)
