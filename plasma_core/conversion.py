"""
Byte conversion capability for the map facade.

A ``ByteConversion`` maps a domain type to bytes and back.  Key converters
must declare the fixed ``length`` their output always has; value
converters may leave it as ``None``.
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from plasma_core.errors import SerializationError

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


class ByteConversion(ABC, Generic[T]):
    """Bidirectional mapping between ``T`` and byte strings."""

    length: int | None = None

    @abstractmethod
    def to_bytes(self, obj: T) -> bytes: ...

    @abstractmethod
    def from_bytes(self, data: bytes) -> T: ...

    def to_hex(self, obj: T) -> str:
        return self.to_bytes(obj).hex()

    def checked_bytes(self, obj: T) -> bytes:
        """``to_bytes`` followed by the declared length check."""
        data = self.to_bytes(obj)
        if self.length is not None and len(data) != self.length:
            raise SerializationError(
                f"{type(self).__name__} produced {len(data)} bytes, "
                f"expected {self.length}"
            )
        return data


class RawBytes(ByteConversion[bytes]):
    """Identity conversion, optionally of a fixed length."""

    def __init__(self, length: int | None = None):
        self.length = length

    def to_bytes(self, obj: bytes) -> bytes:
        return bytes(obj)

    def from_bytes(self, data: bytes) -> bytes:
        return bytes(data)


class Utf8String(ByteConversion[str]):
    """UTF-8 text.  With ``length`` set, shorter strings are NUL-padded."""

    def __init__(self, length: int | None = None):
        self.length = length

    def to_bytes(self, obj: str) -> bytes:
        data = obj.encode("utf-8")
        if self.length is not None:
            if len(data) > self.length:
                raise SerializationError(
                    f"String of {len(data)} bytes exceeds {self.length}"
                )
            data = data.ljust(self.length, b"\x00")
        return data

    def from_bytes(self, data: bytes) -> str:
        if self.length is not None:
            data = data.rstrip(b"\x00")
        return data.decode("utf-8")


class Int64(ByteConversion[int]):
    """Signed 64-bit big-endian integer."""

    length = 8

    def to_bytes(self, obj: int) -> bytes:
        try:
            return struct.pack(">q", obj)
        except struct.error as exc:
            raise SerializationError(f"{obj} does not fit in 64 bits") from exc

    def from_bytes(self, data: bytes) -> int:
        if len(data) != 8:
            raise SerializationError(f"Int64 needs 8 bytes, got {len(data)}")
        return struct.unpack(">q", data)[0]


@dataclass(frozen=True)
class KVConversion(Generic[K, V]):
    """The key and value converters a facade call works with."""
    key: ByteConversion[K]
    value: ByteConversion[V]
