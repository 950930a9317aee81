"""Clean binary I/O utilities for DBPF and record parsing."""

import struct
from enum import Enum
from typing import BinaryIO
from io import BytesIO

from simtray.errors import FormatError


class ByteOrder(Enum):
    """Byte order enum for struct packing/unpacking."""
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


class IoBuffer:
    """Binary reader/writer with endian support."""

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN):
        self.stream = stream
        self.byte_order = byte_order

    @classmethod
    def from_bytes(cls, data: bytes = b"", byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Create from bytes."""
        return cls(BytesIO(data), byte_order)

    @classmethod
    def from_stream(cls, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'IoBuffer':
        """Wrap an already-open binary stream (not copied)."""
        return cls(stream, byte_order)

    @property
    def position(self) -> int:
        """Current position in stream."""
        return self.stream.tell()

    @position.setter
    def position(self, value: int):
        """Seek to position."""
        self.stream.seek(value)

    @property
    def length(self) -> int:
        """Total stream length."""
        current = self.stream.tell()
        self.stream.seek(0, 2)  # Seek to end
        end = self.stream.tell()
        self.stream.seek(current)  # Seek back
        return end

    @property
    def has_more(self) -> bool:
        """Check if there are more bytes to read."""
        return self.position < self.length

    def has_bytes(self, num_bytes: int) -> bool:
        """Check if there are at least num_bytes remaining."""
        return (self.length - self.position) >= num_bytes

    def skip(self, num_bytes: int):
        """Skip bytes from current position."""
        self.stream.seek(num_bytes, 1)

    def seek(self, offset: int, whence: int = 0):
        """Seek in stream (whence: 0=start, 1=current, 2=end)."""
        self.stream.seek(offset, whence)

    def getvalue(self) -> bytes:
        """Everything written so far (BytesIO-backed buffers only)."""
        return self.stream.getvalue()

    # ── reading ────────────────────────────────────────────────────────────

    def read_bytes(self, count: int) -> bytes:
        """Read exactly count bytes; a short read is a format error."""
        if count < 0 or not self.has_bytes(count):
            raise FormatError(
                f"Unexpected end of stream at offset {self.position} "
                f"(wanted {count} bytes, {max(self.length - self.position, 0)} left)"
            )
        data = self.stream.read(count)
        if len(data) != count:
            raise FormatError(
                f"Unexpected end of stream at offset {self.position} "
                f"(wanted {count} bytes, got {len(data)})"
            )
        return data

    def read_byte(self) -> int:
        """Read single byte (0-255)."""
        return self.read_bytes(1)[0]

    def read_uint16(self) -> int:
        """Read unsigned 16-bit integer."""
        fmt = f"{self.byte_order.value}H"
        return struct.unpack(fmt, self.read_bytes(2))[0]

    def read_uint32(self) -> int:
        """Read unsigned 32-bit integer."""
        fmt = f"{self.byte_order.value}I"
        return struct.unpack(fmt, self.read_bytes(4))[0]

    def read_uint64(self) -> int:
        """Read unsigned 64-bit integer."""
        fmt = f"{self.byte_order.value}Q"
        return struct.unpack(fmt, self.read_bytes(8))[0]

    def read_varint(self) -> int:
        """Read a base-128 varint (at most 10 bytes, 64-bit result)."""
        result = 0
        shift = 0
        for _ in range(10):
            byte = self.read_byte()
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result & 0xFFFFFFFFFFFFFFFF
            shift += 7
        raise FormatError(f"Varint too long at offset {self.position}")

    # ── writing ────────────────────────────────────────────────────────────

    def write_bytes(self, data: bytes):
        """Write raw bytes."""
        self.stream.write(data)

    def write_byte(self, value: int):
        """Write single byte."""
        self.stream.write(struct.pack('B', value))

    def write_uint32(self, value: int):
        """Write unsigned 32-bit integer."""
        fmt = f"{self.byte_order.value}I"
        self.stream.write(struct.pack(fmt, value))

    def write_uint64(self, value: int):
        """Write unsigned 64-bit integer."""
        fmt = f"{self.byte_order.value}Q"
        self.stream.write(struct.pack(fmt, value))

    def write_varint(self, value: int):
        """Write a base-128 varint. Negative values use 64-bit two's complement."""
        value &= 0xFFFFFFFFFFFFFFFF
        out = bytearray()
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                out.append(byte | 0x80)
            else:
                out.append(byte)
                break
        self.stream.write(bytes(out))
