from __future__ import annotations


class CodecError(Exception):
    pass


class StreamError(CodecError):
    def __init__(self, message: str, *, filename: str | None = None, line_number: int | None = None):
        if filename is not None and line_number is not None:
            message = f"{message} (in {filename}, line {line_number})"
        super().__init__(message)
        self.filename = filename
        self.line_number = line_number


class DecodeError(CodecError):
    pass


class EncodeError(CodecError):
    pass


class ValidationError(CodecError, ValueError):
    def __init__(self, field: str, value: object, message: str):
        super().__init__(f"{field}: {message} (got {value!r})")
        self.field = field
        self.value = value


class ChainError(CodecError):
    pass
