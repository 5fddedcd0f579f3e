"""Test the mapping from declared parameter types to registry type names."""
import logging

import numpy
import pytest
from bcsmarshal.codec import BcsRegistry
from bcsmarshal.exceptions import TypeMismatchError
from bcsmarshal.exceptions import UnsupportedTypeError
from bcsmarshal.resolver import as_sequence
from bcsmarshal.resolver import NO_VALUE
from bcsmarshal.resolver import TypeResolver
from bcsmarshal.types import MutableReference
from bcsmarshal.types import Primitive
from bcsmarshal.types import Struct
from bcsmarshal.types import StructTag
from bcsmarshal.types import TypeParameter
from bcsmarshal.types import Vector

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

U8 = Primitive('U8')
U64 = Primitive('U64')


def test_primitives(registry):
    resolver = TypeResolver(registry)
    for name, expected in (('U8', 'u8'), ('U16', 'u16'), ('U32', 'u32'), ('U64', 'u64'),
                           ('U128', 'u128'), ('U256', 'u256'), ('Bool', 'bool'), ('Address', 'address')):
        assert resolver.resolve(Primitive(name)) == expected
        assert resolver.resolve(Primitive(name), decoding=True) == expected

    assert resolver.resolve(U64, 12) == 'u64'
    assert resolver.resolve(U64, '12') == 'u64'
    assert resolver.resolve(U8, numpy.uint8(3)) == 'u8'
    assert resolver.resolve(Primitive('Bool'), False) == 'bool'

    with pytest.raises(TypeMismatchError) as exc_info:
        resolver.resolve(U64, '-1')
    assert exc_info.value.expected == 'number'
    with pytest.raises(TypeMismatchError):
        resolver.resolve(Primitive('Bool'), 'true')
    with pytest.raises(TypeMismatchError):
        resolver.resolve(U8, numpy.bool_(True))


def test_vectors_registered_on_demand():
    registry = BcsRegistry()
    resolver = TypeResolver(registry)
    assert 'vector<vector<u32>>' not in registry
    name = resolver.resolve(Vector(Vector(Primitive('U32'))), [[1, 2], []])
    assert name == 'vector<vector<u32>>'
    assert 'vector<u32>' in registry
    assert registry.encode(name, [[1], []]) == b'\x02\x01\x01\x00\x00\x00\x00'
    # Resolving again is harmless.
    assert resolver.resolve(Vector(Vector(Primitive('U32')))) == name


def test_byte_vectors(registry):
    resolver = TypeResolver(registry)
    byte_vector = Vector(U8)
    assert resolver.resolve(byte_vector, 'text') == 'string'
    assert resolver.resolve(byte_vector) == 'string'
    assert resolver.resolve(byte_vector, [1, 2]) == 'vector<u8>'
    assert resolver.resolve(byte_vector, b'\x01') == 'vector<u8>'
    assert resolver.resolve(byte_vector, []) == 'vector<u8>'
    assert resolver.resolve(byte_vector, 'text', decoding=True) == 'vector<u8>'
    assert resolver.resolve(byte_vector, decoding=True) == 'vector<u8>'
    assert resolver.resolve(Vector(byte_vector), ['a', 'b']) == 'vector<string>'
    assert resolver.resolve(Vector(byte_vector), decoding=True) == 'vector<vector<u8>>'


def test_vector_value_checks(registry):
    resolver = TypeResolver(registry)
    with pytest.raises(TypeMismatchError) as exc_info:
        resolver.resolve(Vector(U64), 5)
    assert exc_info.value.expected == 'array'
    with pytest.raises(TypeMismatchError):
        resolver.resolve(Vector(U64), 'not an array')
    with pytest.raises(TypeMismatchError):
        resolver.resolve(Vector(Primitive('Address')), ['0x2'])
    # Only the first element is checked.
    assert resolver.resolve(Vector(U64), [1, 'x']) == 'vector<u64>'
    with pytest.raises(TypeMismatchError):
        resolver.resolve(Vector(U64), numpy.zeros((2, 2), dtype=numpy.uint64))


def test_unsupported(registry):
    resolver = TypeResolver(registry)
    coin = Struct(StructTag('0x2', 'coin', 'Coin'))
    for normalized in (Primitive('Signer'), TypeParameter(0), coin, MutableReference(U64), Vector(coin)):
        with pytest.raises(UnsupportedTypeError):
            resolver.resolve(normalized)


def test_as_sequence():
    assert as_sequence([1, 2]) == [1, 2]
    assert as_sequence((1, 2)) == [1, 2]
    assert as_sequence(b'\x01\x02') == [1, 2]
    assert as_sequence(numpy.array([3, 4])) == [3, 4]
    assert as_sequence('12') is None
    assert as_sequence(12) is None
    assert as_sequence(numpy.zeros((1, 1))) is None
    assert not NO_VALUE
