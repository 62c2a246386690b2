"""Unsigned 24-bit big-endian integers as stored in composition timing fields."""

from __future__ import annotations

from typing import Union

from AEP_Server.errors import MalformedRecordError


UINT24_MAX = (1 << 24) - 1


class Fixed24:
    """Three raw bytes holding an unsigned big-endian integer."""

    __slots__ = ("_raw",)

    def __init__(self, value: int = 0):
        self._raw = b"\x00\x00\x00"
        self.set(value)

    @classmethod
    def from_bytes(cls, raw: Union[bytes, bytearray, memoryview]) -> "Fixed24":
        raw = bytes(raw)
        if len(raw) != 3:
            raise MalformedRecordError(
                f"24-bit field needs exactly 3 bytes, got {len(raw)}",
                code="uint24_bad_length",
            )
        instance = cls.__new__(cls)
        instance._raw = raw
        return instance

    def set(self, value: int) -> "Fixed24":
        value = int(value)
        if value < 0 or value > UINT24_MAX:
            raise MalformedRecordError(
                f"{value} does not fit in 24 bits (max {UINT24_MAX})",
                code="uint24_out_of_range",
            )
        self._raw = bytes(((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF))
        return self

    def to_int(self) -> int:
        return (self._raw[0] << 16) | (self._raw[1] << 8) | self._raw[2]

    @property
    def raw(self) -> bytes:
        return self._raw

    def __getitem__(self, index: int) -> int:
        return self._raw[index]

    def __int__(self) -> int:
        return self.to_int()

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return str(self.to_int())

    def __repr__(self) -> str:
        return f"Fixed24({self.to_int()})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Fixed24):
            return self._raw == other._raw
        if isinstance(other, int):
            return self.to_int() == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._raw)
