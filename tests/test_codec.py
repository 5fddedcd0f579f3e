"""Test the BCS registry and the wire rules for basic types."""
import logging

import numpy
import pytest
from bcsmarshal.codec import BcsReader
from bcsmarshal.codec import BcsRegistry
from bcsmarshal.codec import BcsWriter
from bcsmarshal.exceptions import ConflictingRegistrationError
from bcsmarshal.exceptions import DecodeError
from bcsmarshal.exceptions import ProtocolError
from bcsmarshal.exceptions import TypeMismatchError
from bcsmarshal.exceptions import UnknownTypeError

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))


def test_uleb128():
    for value, encoded in ((0, b'\x00'),
                           (1, b'\x01'),
                           (127, b'\x7f'),
                           (128, b'\x80\x01'),
                           (300, b'\xac\x02'),
                           (16384, b'\x80\x80\x01')):
        assert BcsWriter().write_uleb128(value).to_bytes() == encoded
        reader = BcsReader(encoded)
        assert reader.read_uleb128() == value
        assert reader.remaining() == 0

    with pytest.raises(DecodeError):
        BcsReader(b'\x80').read_uleb128()
    with pytest.raises(DecodeError):
        BcsReader(b'\xff' * 10 + b'\x01').read_uleb128()

    # The tenth byte holds only the top bit of a 64-bit value.
    assert BcsReader(b'\xff' * 9 + b'\x01').read_uleb128() == 2 ** 64 - 1
    with pytest.raises(DecodeError):
        BcsReader(b'\xff' * 9 + b'\x7f').read_uleb128()
    # Trailing zero groups are not canonical.
    with pytest.raises(DecodeError):
        BcsReader(b'\x80\x00').read_uleb128()
    with pytest.raises(DecodeError):
        BcsReader(b'\x81\x80\x00').read_uleb128()


def test_unsigned_integers():
    registry = BcsRegistry()
    assert registry.encode('u8', 5) == b'\x05'
    assert registry.encode('u16', 0x1234) == b'\x34\x12'
    assert registry.encode('u32', 1) == b'\x01\x00\x00\x00'
    assert registry.encode('u64', 1) == b'\x01' + bytes(7)
    assert registry.encode('u128', 2 ** 128 - 1) == b'\xff' * 16
    assert registry.encode('u256', 1) == b'\x01' + bytes(31)
    # Wide integers are often carried as decimal text.
    assert registry.encode('u64', '1000') == (1000).to_bytes(8, 'little')

    for name, value in (('u8', 255), ('u16', 65535), ('u32', 7), ('u64', 2 ** 64 - 1),
                        ('u128', 12345678901234567890), ('u256', 2 ** 200)):
        assert registry.decode(name, registry.encode(name, value)) == value

    with pytest.raises(TypeMismatchError):
        registry.encode('u8', 256)
    with pytest.raises(TypeMismatchError):
        registry.encode('u64', -1)
    with pytest.raises(TypeMismatchError) as exc_info:
        registry.encode('u32', 'eleven')
    assert exc_info.value.expected == 'integer'
    assert exc_info.value.value == 'eleven'
    with pytest.raises(TypeMismatchError):
        registry.encode('u8', True)


def test_bool():
    registry = BcsRegistry()
    assert registry.encode('bool', True) == b'\x01'
    assert registry.encode('bool', False) == b'\x00'
    assert registry.decode('bool', b'\x01') is True
    assert registry.decode('bool', b'\x00') is False
    with pytest.raises(DecodeError):
        registry.decode('bool', b'\x02')
    with pytest.raises(TypeMismatchError):
        registry.encode('bool', 1)


def test_string():
    registry = BcsRegistry()
    assert registry.encode('string', 'abc') == b'\x03abc'
    assert registry.encode('string', '') == b'\x00'
    text = 'çå∞≠¢õß∂ƒ∫'
    assert registry.decode('string', registry.encode('string', text)) == text
    with pytest.raises(DecodeError):
        registry.decode('string', b'\x02\xff\xfe')
    with pytest.raises(TypeMismatchError):
        registry.encode('string', 42)


def test_address():
    registry = BcsRegistry().register_address_type('address', 20)
    encoded = registry.encode('address', '0x2')
    assert encoded == bytes(19) + b'\x02'
    assert registry.decode('address', encoded) == '0x' + '0' * 39 + '2'
    full = '0x' + 'ab' * 20
    assert registry.decode('address', registry.encode('address', full)) == full
    with pytest.raises(TypeMismatchError):
        registry.encode('address', '0x' + '1' * 41)
    with pytest.raises(TypeMismatchError):
        registry.encode('address', '0xzz')
    with pytest.raises(TypeMismatchError):
        registry.encode('address', 2)


def test_vectors():
    registry = BcsRegistry().register_vector_type('vector<u16>', 'u16').register_vector_type('vector<string>', 'string')
    assert registry.encode('vector<u16>', [1, 2]) == b'\x02\x01\x00\x02\x00'
    assert registry.encode('vector<u16>', []) == b'\x00'
    assert registry.encode('vector<u16>', numpy.array([1, 2], dtype=numpy.int64)) == b'\x02\x01\x00\x02\x00'
    assert registry.decode('vector<u16>', b'\x02\x01\x00\x02\x00') == [1, 2]
    assert registry.encode('vector<string>', ['a', 'bc']) == b'\x02\x01a\x02bc'
    assert registry.decode('vector<string>', b'\x02\x01a\x02bc') == ['a', 'bc']

    # Element errors are reported by the element rule.
    with pytest.raises(TypeMismatchError):
        registry.encode('vector<u16>', [1, 65536])
    with pytest.raises(TypeMismatchError):
        registry.encode('vector<u16>', [1, True])
    with pytest.raises(TypeMismatchError):
        registry.encode('vector<u16>', 'not an array')
    with pytest.raises(DecodeError):
        registry.decode('vector<u16>', b'\x02\x01\x00')


def test_large_byte_vector():
    registry = BcsRegistry().register_vector_type('vector<u8>', 'u8')
    data = list(range(256)) * 4
    encoded = registry.encode('vector<u8>', data)
    assert encoded[:2] == b'\x80\x08'
    assert encoded[2:] == bytes(data)
    assert registry.decode('vector<u8>', encoded) == data
    assert registry.encode('vector<u8>', bytes(data)) == encoded


def test_structs_and_enums():
    registry = BcsRegistry()
    registry.register_struct_type('Coin', {'value': 'u64', 'name': 'string'})
    registry.register_enum_type('Option<u64>', {'None': None, 'Some': 'u64'})
    registry.register_enum_type('Wrapper', {'Nothing': None, 'Coin': 'Coin'})

    coin = {'value': 1, 'name': 'SUI'}
    assert registry.encode('Coin', coin) == b'\x01' + bytes(7) + b'\x03SUI'
    assert registry.decode('Coin', registry.encode('Coin', coin)) == coin

    assert registry.encode('Option<u64>', {'None': None}) == b'\x00'
    assert registry.encode('Option<u64>', {'Some': 2}) == b'\x01\x02' + bytes(7)
    assert registry.decode('Option<u64>', b'\x01\x02' + bytes(7)) == {'Some': 2}
    assert registry.decode('Wrapper', registry.encode('Wrapper', {'Coin': coin})) == {'Coin': coin}

    with pytest.raises(TypeMismatchError):
        registry.encode('Coin', {'value': 1})
    with pytest.raises(TypeMismatchError):
        registry.encode('Option<u64>', {'Maybe': 1})
    with pytest.raises(TypeMismatchError):
        registry.encode('Option<u64>', {'None': None, 'Some': 1})
    with pytest.raises(DecodeError):
        registry.decode('Option<u64>', b'\x05')


def test_forward_reference():
    """Composite types may name types that are registered later."""
    registry = BcsRegistry()
    registry.register_vector_type('vector<Later>', 'Later')
    with pytest.raises(UnknownTypeError):
        registry.encode('vector<Later>', [{'x': 1}])
    registry.register_struct_type('Later', {'x': 'u8'})
    assert registry.encode('vector<Later>', [{'x': 1}]) == b'\x01\x01'


def test_registration_is_idempotent():
    registry = BcsRegistry()
    registry.register_vector_type('vector<u32>', 'u32')
    registry.register_vector_type('vector<u32>', 'u32')
    registry.register_struct_type('Pair', {'a': 'u8', 'b': 'u8'})
    registry.register_struct_type('Pair', {'a': 'u8', 'b': 'u8'})
    assert 'vector<u32>' in registry
    assert registry.has_type('Pair')

    with pytest.raises(ConflictingRegistrationError):
        registry.register_vector_type('vector<u32>', 'u64')
    with pytest.raises(ProtocolError):
        registry.register_struct_type('Pair', {'b': 'u8', 'a': 'u8'})
    with pytest.raises(ConflictingRegistrationError):
        registry.register_primitive('u8', 2)
    # The first registration is kept.
    assert registry.encode('vector<u32>', [1]) == b'\x01\x01\x00\x00\x00'


def test_unknown_and_trailing():
    registry = BcsRegistry()
    with pytest.raises(UnknownTypeError):
        registry.encode('u7', 1)
    with pytest.raises(UnknownTypeError):
        registry.decode('Nope', b'')
    with pytest.raises(DecodeError):
        registry.decode('u8', b'\x01\x02')
    with pytest.raises(DecodeError):
        registry.decode('u64', b'\x01')
