"""Provide BCS encoding and decoding through a registry of named type rules.

BCS (Binary Canonical Serialization) is deterministic: a typed value always
produces the same bytes. Values are handled in their basic Python
representation, so that records can be built and inspected without generated
classes.

Wire rules:
    * unsigned integers: fixed width, little-endian
    * bool: one byte, 0 or 1
    * address: fixed number of raw bytes, represented as ``0x``-prefixed hex text
    * string: ULEB128 byte length followed by UTF-8 bytes
    * vector: ULEB128 element count followed by the elements
    * struct: fields concatenated in declaration order; value is a mapping
    * enum: ULEB128 variant index followed by the variant payload (if any);
      value is a single-key mapping ``{variant_name: payload}``

Type names are resolved at encode/decode time, so composite types may refer to
names that are registered later.

A BcsRegistry is append-only by name. Registering a name again with an equal
rule is a no-op, so lazy registration from overlapping calls is safe.
Registering a name with a different rule raises ConflictingRegistrationError
and leaves the existing rule in place.
"""
from __future__ import annotations

__all__ = ['BcsReader', 'BcsRegistry', 'BcsWriter', 'TypeRule']

import abc
import collections.abc
import logging
import numbers
import string
import typing
from dataclasses import dataclass

import numpy

from bcsmarshal.exceptions import ConflictingRegistrationError
from bcsmarshal.exceptions import DecodeError
from bcsmarshal.exceptions import InternalError
from bcsmarshal.exceptions import TypeMismatchError
from bcsmarshal.exceptions import UnknownTypeError

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

_ULEB128_MAX_SHIFT = 63

Encoder = typing.Callable[['BcsWriter', typing.Any], None]
Decoder = typing.Callable[['BcsReader'], typing.Any]


class BcsWriter:
    """Accumulate encoded bytes."""

    def __init__(self):
        self._buffer = bytearray()

    def write_bytes(self, data: bytes) -> 'BcsWriter':
        self._buffer.extend(data)
        return self

    def write_uint(self, value: int, size: int) -> 'BcsWriter':
        self._buffer.extend(value.to_bytes(size, byteorder='little'))
        return self

    def write_uleb128(self, value: int) -> 'BcsWriter':
        if value < 0:
            raise InternalError(f'ULEB128 requires a non-negative integer. Got {value}.')
        while True:
            byte = value & 0x7f
            value >>= 7
            if value:
                self._buffer.append(byte | 0x80)
            else:
                self._buffer.append(byte)
                break
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


class BcsReader:
    """Consume encoded bytes from the front of a buffer."""

    def __init__(self, data: typing.Union[bytes, bytearray, typing.Sequence[int]]):
        self._data = bytes(data)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def remaining(self) -> int:
        return len(self._data) - self._position

    def read_bytes(self, size: int) -> bytes:
        end = self._position + size
        if size < 0 or end > len(self._data):
            raise DecodeError(
                f'Unexpected end of data: need {size} bytes at offset {self._position}, '
                f'but only {self.remaining()} remain.')
        chunk = self._data[self._position:end]
        self._position = end
        return chunk

    def read_uint(self, size: int) -> int:
        return int.from_bytes(self.read_bytes(size), byteorder='little')

    def read_uleb128(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.read_bytes(1)[0]
            if shift == _ULEB128_MAX_SHIFT and byte > 1:
                raise DecodeError('ULEB128 value does not fit in 64 bits.')
            result |= (byte & 0x7f) << shift
            if not byte & 0x80:
                if byte == 0 and shift:
                    raise DecodeError('Non-canonical ULEB128 encoding (trailing zero byte).')
                return result
            shift += 7


def _is_sequence(value) -> bool:
    if isinstance(value, numpy.ndarray):
        return value.ndim == 1
    return isinstance(value, collections.abc.Sequence) and not isinstance(value, (str, bytes, bytearray))


class TypeRule(abc.ABC):
    """Encode and decode values of one named type.

    Rules are immutable and compare equal if and only if they describe the same
    wire shape, which is what makes repeated registration idempotent.
    """

    @abc.abstractmethod
    def write(self, registry: 'BcsRegistry', writer: BcsWriter, value):
        raise NotImplementedError

    @abc.abstractmethod
    def read(self, registry: 'BcsRegistry', reader: BcsReader):
        raise NotImplementedError


@dataclass(frozen=True)
class UnsignedIntegerRule(TypeRule):
    size: int

    def describe(self) -> str:
        return f'u{8 * self.size}'

    def check_value(self, value) -> int:
        """Normalize *value* to a Python int in range.

        Decimal text is accepted, since wide integers are commonly carried as
        strings in JSON.
        """
        if isinstance(value, str) and value.isdecimal():
            value = int(value)
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise TypeMismatchError(f'Expected {value!r} to be an integer ({self.describe()}), '
                                    f'received {type(value).__name__}.',
                                    expected='integer', value=value)
        value = int(value)
        if value < 0 or value >= 1 << (8 * self.size):
            raise TypeMismatchError(f'{value} is out of range for {self.describe()}.',
                                    expected=self.describe(), value=value)
        return value

    def write(self, registry, writer, value):
        writer.write_uint(self.check_value(value), self.size)

    def read(self, registry, reader):
        return reader.read_uint(self.size)


@dataclass(frozen=True)
class BoolRule(TypeRule):

    def write(self, registry, writer, value):
        if not isinstance(value, bool):
            raise TypeMismatchError(f'Expected {value!r} to be boolean, received {type(value).__name__}.',
                                    expected='boolean', value=value)
        writer.write_uint(int(value), 1)

    def read(self, registry, reader):
        byte = reader.read_uint(1)
        if byte > 1:
            raise DecodeError(f'Invalid boolean byte {byte:#04x}.')
        return bool(byte)


@dataclass(frozen=True)
class AddressRule(TypeRule):
    """Fixed-length address, written as raw bytes.

    Shorter hex text is left-padded with zeros, so ``0x2`` names the same
    address as its full-length form.
    """
    length: int

    def write(self, registry, writer, value):
        if not isinstance(value, str):
            raise TypeMismatchError(f'Expected {value!r} to be an address, received {type(value).__name__}.',
                                    expected='address', value=value)
        digits = value[2:] if value.lower().startswith('0x') else value
        if not digits or len(digits) > 2 * self.length or any(c not in string.hexdigits for c in digits):
            raise TypeMismatchError(f'Invalid {self.length}-byte address {value!r}.',
                                    expected='address', value=value)
        writer.write_bytes(bytes.fromhex(digits.rjust(2 * self.length, '0')))

    def read(self, registry, reader):
        return '0x' + reader.read_bytes(self.length).hex()


@dataclass(frozen=True)
class StringRule(TypeRule):

    def write(self, registry, writer, value):
        if not isinstance(value, str):
            raise TypeMismatchError(f'Expected {value!r} to be a string, received {type(value).__name__}.',
                                    expected='string', value=value)
        data = value.encode('utf-8')
        writer.write_uleb128(len(data))
        writer.write_bytes(data)

    def read(self, registry, reader):
        size = reader.read_uleb128()
        try:
            return reader.read_bytes(size).decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError('String data is not valid UTF-8.') from e


@dataclass(frozen=True)
class CustomRule(TypeRule):
    """Delegate to caller-provided encoder and decoder functions."""
    encoder: Encoder
    decoder: Decoder

    def write(self, registry, writer, value):
        self.encoder(writer, value)

    def read(self, registry, reader):
        return self.decoder(reader)


def _pack_integers(values, rule: UnsignedIntegerRule) -> typing.Optional[bytes]:
    """Pack a homogeneous integer vector in one step, if possible.

    Returns None if the values need element-by-element handling, in which case
    the element rule reports any invalid value.
    """
    if not isinstance(values, numpy.ndarray) and any(isinstance(v, bool) for v in values):
        return None
    array = numpy.asarray(values)
    if array.ndim != 1 or array.size == 0 or array.dtype.kind not in 'iu':
        return None
    if array.min() < 0 or int(array.max()) >= 1 << (8 * rule.size):
        return None
    return array.astype(f'<u{rule.size}').tobytes()


@dataclass(frozen=True)
class VectorRule(TypeRule):
    element: str

    def write(self, registry, writer, value):
        if isinstance(value, (bytes, bytearray)):
            value = list(value)
        if not _is_sequence(value):
            raise TypeMismatchError(f'Expect {value!r} to be an array, received {type(value).__name__}.',
                                    expected='array', value=value)
        writer.write_uleb128(len(value))
        element_rule = registry.get_rule(self.element)
        if isinstance(element_rule, UnsignedIntegerRule) and element_rule.size <= 8:
            packed = _pack_integers(value, element_rule)
            if packed is not None:
                writer.write_bytes(packed)
                return
        if isinstance(value, numpy.ndarray):
            value = value.tolist()
        for item in value:
            element_rule.write(registry, writer, item)

    def read(self, registry, reader):
        count = reader.read_uleb128()
        element_rule = registry.get_rule(self.element)
        if isinstance(element_rule, UnsignedIntegerRule) and element_rule.size <= 8:
            raw = reader.read_bytes(count * element_rule.size)
            return numpy.frombuffer(raw, dtype=f'<u{element_rule.size}').tolist()
        return [element_rule.read(registry, reader) for _ in range(count)]


@dataclass(frozen=True)
class StructRule(TypeRule):
    fields: typing.Tuple[typing.Tuple[str, str], ...]

    def write(self, registry, writer, value):
        if not isinstance(value, collections.abc.Mapping):
            raise TypeMismatchError(f'Expected a mapping of struct fields, received {value!r}.',
                                    expected='struct', value=value)
        for name, type_name in self.fields:
            if name not in value:
                raise TypeMismatchError(f'Struct value is missing field {name!r}: {value!r}.',
                                        expected=f'struct field {name}', value=value)
            registry.get_rule(type_name).write(registry, writer, value[name])

    def read(self, registry, reader):
        return {name: registry.get_rule(type_name).read(registry, reader) for name, type_name in self.fields}


@dataclass(frozen=True)
class EnumRule(TypeRule):
    variants: typing.Tuple[typing.Tuple[str, typing.Optional[str]], ...]

    def write(self, registry, writer, value):
        if not isinstance(value, collections.abc.Mapping) or len(value) != 1:
            raise TypeMismatchError(f'Expected a single-key mapping naming an enum variant, received {value!r}.',
                                    expected='enum', value=value)
        (key, payload), = value.items()
        for index, (name, type_name) in enumerate(self.variants):
            if name == key:
                writer.write_uleb128(index)
                if type_name is not None:
                    registry.get_rule(type_name).write(registry, writer, payload)
                return
        raise TypeMismatchError(f'Unknown enum variant {key!r}. '
                                f'Expected one of {[name for name, _ in self.variants]}.',
                                expected='enum variant', value=value)

    def read(self, registry, reader):
        index = reader.read_uleb128()
        if index >= len(self.variants):
            raise DecodeError(f'Enum variant index {index} out of range ({len(self.variants)} variants).')
        name, type_name = self.variants[index]
        if type_name is None:
            return {name: None}
        return {name: registry.get_rule(type_name).read(registry, reader)}


class BcsRegistry:
    """Table of named BCS type rules.

    A new registry knows the unsigned integers ``u8`` through ``u256``,
    ``bool``, and ``string``. Other types are registered with the
    ``register_*`` methods, which return the registry so that calls can be chained.
    """

    def __init__(self):
        self._rules: typing.Dict[str, TypeRule] = dict()
        for bits in (8, 16, 32, 64, 128, 256):
            self.register_primitive(f'u{bits}', bits // 8)
        self.register('bool', BoolRule())
        self.register_string_type('string')

    def register(self, name: str, rule: TypeRule) -> 'BcsRegistry':
        if not isinstance(rule, TypeRule):
            raise InternalError(f'Not a TypeRule: {rule!r}')
        existing = self._rules.get(name)
        if existing is not None:
            if existing == rule:
                return self
            raise ConflictingRegistrationError(
                f'Type {name!r} is already registered as {existing!r}; refusing to replace it with {rule!r}.')
        self._rules[name] = rule
        logger.debug(f'Registered BCS type {name!r}: {rule!r}')
        return self

    def register_primitive(self, name: str, size: int) -> 'BcsRegistry':
        return self.register(name, UnsignedIntegerRule(size))

    def register_address_type(self, name: str, length: int) -> 'BcsRegistry':
        return self.register(name, AddressRule(length))

    def register_string_type(self, name: str) -> 'BcsRegistry':
        return self.register(name, StringRule())

    def register_type(self, name: str, encoder: Encoder, decoder: Decoder) -> 'BcsRegistry':
        return self.register(name, CustomRule(encoder, decoder))

    def register_vector_type(self, name: str, element: str) -> 'BcsRegistry':
        return self.register(name, VectorRule(element))

    def register_struct_type(self, name: str, fields: typing.Mapping[str, str]) -> 'BcsRegistry':
        return self.register(name, StructRule(tuple(fields.items())))

    def register_enum_type(self, name: str, variants: typing.Mapping[str, typing.Optional[str]]) -> 'BcsRegistry':
        return self.register(name, EnumRule(tuple(variants.items())))

    def has_type(self, name: str) -> bool:
        return name in self._rules

    def __contains__(self, name) -> bool:
        return self.has_type(name)

    def get_rule(self, name: str) -> TypeRule:
        try:
            return self._rules[name]
        except KeyError:
            raise UnknownTypeError(f'No BCS type registered for {name!r}.') from None

    def encode(self, name: str, value) -> bytes:
        """Get the canonical encoding of *value* as type *name*."""
        writer = BcsWriter()
        self.get_rule(name).write(self, writer, value)
        return writer.to_bytes()

    def decode(self, name: str, data) -> typing.Any:
        """Decode exactly one value of type *name* from *data*.

        Raises:
            DecodeError if the data is truncated or has trailing bytes.
        """
        reader = BcsReader(data)
        value = self.get_rule(name).read(self, reader)
        if reader.remaining():
            raise DecodeError(f'{reader.remaining()} unexpected trailing bytes after {name!r} value.')
        return value
