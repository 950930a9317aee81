"""
Protobuf Record Base Class

Save and tray payloads are protobuf messages. Each record class declares a
FIELDS table of ProtoField descriptors; ProtoMessage turns that table into
a decoder and an encoder.

Fields missing from a FIELDS table are not dropped. Their raw bytes (tag
included) are kept in ``unknown_fields`` keyed by field number and written
back on encode, merged with the known fields in field-number order. A
record decoded from canonically ordered bytes therefore re-encodes to the
exact same bytes.
"""

from dataclasses import dataclass, field, fields as dataclass_fields
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, List, Optional, Set, Tuple

from simtray.errors import FormatError
from simtray.utils.binary import IoBuffer


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


class FieldKind(Enum):
    """How a known field is typed and written."""
    UINT = "uint"          # varint uint32/uint64
    FIXED64 = "fixed64"
    BOOL = "bool"
    ENUM = "enum"
    STRING = "string"
    MESSAGE = "message"


_INTEGER_KINDS = (FieldKind.UINT, FieldKind.FIXED64, FieldKind.BOOL, FieldKind.ENUM)


@dataclass(frozen=True)
class ProtoField:
    """Descriptor for one known field of a record."""
    number: int
    name: str
    kind: FieldKind
    repeated: bool = False
    packed: bool = False
    required: bool = False
    message: Optional[type] = None
    enum: Optional[type] = None

    @property
    def wire_type(self) -> WireType:
        if self.kind == FieldKind.FIXED64:
            return WireType.FIXED64
        if self.kind in (FieldKind.STRING, FieldKind.MESSAGE):
            return WireType.LENGTH_DELIMITED
        return WireType.VARINT

    @property
    def default(self) -> Any:
        if self.kind == FieldKind.STRING:
            return ""
        if self.kind == FieldKind.BOOL:
            return False
        if self.kind == FieldKind.MESSAGE:
            return None
        return 0


def _tag(number: int, wire_type: int) -> bytes:
    io = IoBuffer.from_bytes()
    io.write_varint((number << 3) | wire_type)
    return io.getvalue()


def _skip_value(io: IoBuffer, wire_type: int, number: int):
    """Advance past one value of the given wire type."""
    if wire_type == WireType.VARINT:
        io.read_varint()
    elif wire_type == WireType.FIXED64:
        io.read_bytes(8)
    elif wire_type == WireType.LENGTH_DELIMITED:
        io.read_bytes(io.read_varint())
    elif wire_type == WireType.FIXED32:
        io.read_bytes(4)
    else:
        raise FormatError(f"Unsupported wire type {wire_type} for field {number}")


@dataclass
class ProtoMessage:
    """
    Base class for all protobuf records.

    Subclasses are dataclasses that list their known fields in FIELDS.
    """
    FIELDS: ClassVar[Tuple[ProtoField, ...]] = ()

    unknown_fields: Dict[int, List[bytes]] = field(default_factory=dict, repr=False)
    present_fields: Set[int] = field(default_factory=set, repr=False, compare=False)
    packed_layout: Dict[int, bool] = field(default_factory=dict, repr=False, compare=False)

    # ── decoding ───────────────────────────────────────────────────────────

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ProtoMessage':
        """Decode a record. Raises FormatError on malformed input."""
        io = IoBuffer.from_bytes(bytes(data))
        return cls._read(io, len(data))

    @classmethod
    def _read(cls, io: IoBuffer, end: int) -> 'ProtoMessage':
        msg = cls()
        by_number = {f.number: f for f in cls.FIELDS}

        while io.position < end:
            tag_start = io.position
            tag = io.read_varint()
            number, wire_type = tag >> 3, tag & 0x7
            if number == 0:
                raise FormatError(f"Invalid field number 0 in {cls.__name__}")

            known = by_number.get(number)
            if known is None:
                _skip_value(io, wire_type, number)
                value_end = io.position
                io.seek(tag_start)
                msg.unknown_fields.setdefault(number, []).append(io.read_bytes(value_end - tag_start))
                continue

            msg.present_fields.add(number)
            msg._read_known(io, known, wire_type)

        if io.position != end:
            raise FormatError(f"{cls.__name__} overran its length by {io.position - end} bytes")
        return msg

    def _read_known(self, io: IoBuffer, f: ProtoField, wire_type: int):
        if f.kind in _INTEGER_KINDS:
            if f.repeated and wire_type == WireType.LENGTH_DELIMITED:
                length = io.read_varint()
                end = io.position + length
                values = getattr(self, f.name)
                while io.position < end:
                    values.append(self._coerce(f, self._read_integer(io, f.wire_type, f)))
                self.packed_layout[f.number] = True
                return
            value = self._coerce(f, self._read_integer(io, wire_type, f))
            if f.repeated:
                getattr(self, f.name).append(value)
                self.packed_layout[f.number] = False
            else:
                setattr(self, f.name, value)
            return

        if wire_type != WireType.LENGTH_DELIMITED:
            raise FormatError(
                f"Field {f.name} ({f.number}) expects length-delimited data, got wire type {wire_type}"
            )
        length = io.read_varint()

        if f.kind == FieldKind.STRING:
            raw = io.read_bytes(length)
            try:
                value = raw.decode('utf-8')
            except UnicodeDecodeError as e:
                raise FormatError(f"Field {f.name} is not valid UTF-8: {e}") from e
        else:
            value = f.message._read(io, io.position + length)

        if f.repeated:
            getattr(self, f.name).append(value)
        else:
            setattr(self, f.name, value)

    @staticmethod
    def _read_integer(io: IoBuffer, wire_type: int, f: ProtoField) -> int:
        # Integer fields accept any integer wire type
        if wire_type == WireType.VARINT:
            return io.read_varint()
        if wire_type == WireType.FIXED64:
            return io.read_uint64()
        if wire_type == WireType.FIXED32:
            return io.read_uint32()
        raise FormatError(f"Field {f.name} ({f.number}) cannot be read from wire type {wire_type}")

    @staticmethod
    def _coerce(f: ProtoField, value: int) -> Any:
        if f.kind == FieldKind.BOOL:
            return bool(value)
        if f.kind == FieldKind.ENUM and f.enum is not None:
            try:
                return f.enum(value)
            except ValueError:
                return value
        return value

    # ── encoding ───────────────────────────────────────────────────────────

    def to_bytes(self) -> bytes:
        """Encode known and preserved fields in field-number order."""
        chunks: List[Tuple[int, bytes]] = []
        for f in self.FIELDS:
            encoded = self._encode_field(f)
            if encoded:
                chunks.append((f.number, encoded))
        for number, raws in self.unknown_fields.items():
            chunks.append((number, b"".join(raws)))

        chunks.sort(key=lambda chunk: chunk[0])
        return b"".join(encoded for _, encoded in chunks)

    def _encode_field(self, f: ProtoField) -> bytes:
        value = getattr(self, f.name)

        if f.repeated:
            packed = self.packed_layout.get(f.number, f.packed)
            if not value and not (packed and f.number in self.present_fields):
                return b""
            if packed and f.kind in _INTEGER_KINDS:
                body = b"".join(self._encode_scalar(f, item) for item in value)
                return _tag(f.number, WireType.LENGTH_DELIMITED) + self._length_prefix(body)
            return b"".join(
                _tag(f.number, f.wire_type) + self._encode_scalar(f, item) for item in value
            )

        if f.kind == FieldKind.MESSAGE:
            if value is None:
                return b""
        elif not f.required and value == f.default and f.number not in self.present_fields:
            return b""

        return _tag(f.number, f.wire_type) + self._encode_scalar(f, value)

    def _encode_scalar(self, f: ProtoField, value: Any) -> bytes:
        io = IoBuffer.from_bytes()
        if f.kind == FieldKind.FIXED64:
            io.write_uint64(int(value))
        elif f.kind == FieldKind.STRING:
            return self._length_prefix(value.encode('utf-8'))
        elif f.kind == FieldKind.MESSAGE:
            return self._length_prefix(value.to_bytes())
        else:
            io.write_varint(int(value))
        return io.getvalue()

    @staticmethod
    def _length_prefix(body: bytes) -> bytes:
        io = IoBuffer.from_bytes()
        io.write_varint(len(body))
        io.write_bytes(body)
        return io.getvalue()

    # ── helpers ────────────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Known fields as plain Python values (nested records as dicts)."""
        result: Dict[str, Any] = {}
        for f in self.FIELDS:
            value = getattr(self, f.name)
            if f.kind == FieldKind.MESSAGE:
                if f.repeated:
                    value = [item.to_dict() for item in value]
                elif value is not None:
                    value = value.to_dict()
            elif f.kind == FieldKind.ENUM and isinstance(value, Enum):
                value = value.name
            elif f.repeated:
                value = list(value)
            result[f.name] = value
        return result


def _check_fields(cls: type):
    names = {f.name for f in dataclass_fields(cls)}
    for f in cls.FIELDS:
        if f.name not in names:
            raise TypeError(f"{cls.__name__}.FIELDS names unknown attribute '{f.name}'")


def proto_record(cls: type) -> type:
    """Class decorator: make a ProtoMessage subclass a dataclass and validate FIELDS."""
    cls = dataclass(cls)
    _check_fields(cls)
    return cls


__all__ = [
    'WireType',
    'FieldKind',
    'ProtoField',
    'ProtoMessage',
    'proto_record',
]
