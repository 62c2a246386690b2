"""Structured errors raised while decoding an .aep project container."""

from __future__ import annotations

from typing import Optional


class AEPDecodeError(Exception):
    """Structured error raised by the project decoder."""

    code = "decode_failed"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message


class MissingChunkError(AEPDecodeError):
    """A required tag is absent under the expected parent list."""

    code = "missing_chunk"

    def __init__(self, tag: str, context: Optional[str] = None):
        self.tag = tag
        self.context = context
        if context:
            message = f"Missing '{tag}' chunk in {context}"
        else:
            message = f"Missing '{tag}' chunk"
        super().__init__(message)


class MalformedRecordError(AEPDecodeError):
    """A record has the wrong size or a field is outside its domain."""

    code = "malformed_record"


class DivisionByZeroError(AEPDecodeError):
    """A rational field was stored with a zero denominator."""

    code = "division_by_zero"


class UnknownTypeCodeError(AEPDecodeError):
    """An item descriptor carries a type code that is not folder/comp/footage."""

    code = "unknown_type_code"

    def __init__(self, type_code: int, context: Optional[str] = None):
        self.type_code = type_code
        self.context = context
        message = f"Unknown item type code 0x{type_code:04X}"
        if context:
            message = f"{message} in {context}"
        super().__init__(message)
