from .chain import ChainManager, chain_length, iter_chain
from .codec import FieldRule, Kind, Schema
from .config import CodecDefaults, get_defaults
from .convert import ConvertResult, to_dxf
from .document import Document, Layout, detect_version, read, write
from .entity import EntityRecord, Record
from .errors import ChainError, CodecError, DecodeError, EncodeError, StreamError, ValidationError
from .polyline import (
    Polyline,
    Vertex,
    add_vertex,
    decode_polyline,
    decode_vertex,
    encode_polyline,
    encode_vertex,
    new_polyline,
    new_vertex,
)
from .stream import Tag, TagReader, TagWriter
from .table import (
    Table,
    TableCell,
    add_cell,
    decode_table,
    encode_cell,
    encode_table,
    new_cell,
    new_table,
)
from .versions import AcadVersion

__all__ = [
    "read",
    "write",
    "detect_version",
    "Document",
    "Layout",
    "AcadVersion",
    "Tag",
    "TagReader",
    "TagWriter",
    "Kind",
    "FieldRule",
    "Schema",
    "CodecDefaults",
    "get_defaults",
    "Record",
    "EntityRecord",
    "ChainManager",
    "iter_chain",
    "chain_length",
    "Polyline",
    "Vertex",
    "new_polyline",
    "new_vertex",
    "add_vertex",
    "decode_polyline",
    "decode_vertex",
    "encode_polyline",
    "encode_vertex",
    "Table",
    "TableCell",
    "new_table",
    "new_cell",
    "add_cell",
    "decode_table",
    "encode_table",
    "encode_cell",
    "to_dxf",
    "ConvertResult",
    "CodecError",
    "StreamError",
    "DecodeError",
    "EncodeError",
    "ValidationError",
    "ChainError",
]
