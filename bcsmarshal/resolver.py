"""Resolve declared parameter types to registry type names.

The resolver maps a NormalizedType to the name of the BCS type used to encode a
``Pure`` argument. Vector instantiations (``vector<u64>``,
``vector<vector<u8>>``, ...) are registered on demand.

When a caller value is available, it is checked against the declared type
before encoding, so that errors name the expected kind of value. The check is
advisory: inner types of an empty vector are resolved structurally, without a value.
"""
from __future__ import annotations

__all__ = ['NO_VALUE', 'PURE_PRIMITIVES', 'TypeResolver', 'as_sequence']

import collections.abc
import functools
import logging
import numbers
import typing

import numpy

from bcsmarshal.codec import BcsRegistry
from bcsmarshal.exceptions import TypeMismatchError
from bcsmarshal.exceptions import UnsupportedTypeError
from bcsmarshal.types import is_valid_sui_address
from bcsmarshal.types import NormalizedType
from bcsmarshal.types import Primitive
from bcsmarshal.types import Vector

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))


class _NoValue:
    def __repr__(self):
        return 'NO_VALUE'

    def __bool__(self):
        return False


NO_VALUE = _NoValue()
"""Placeholder for an absent caller value (distinct from a JSON ``null``)."""

PURE_PRIMITIVES: typing.Mapping[str, str] = {
    'Address': 'address',
    'Bool': 'bool',
    'U8': 'u8',
    'U16': 'u16',
    'U32': 'u32',
    'U64': 'u64',
    'U128': 'u128',
    'U256': 'u256',
}
"""Primitive normalized type names that can be passed as ``Pure`` arguments."""

_BYTE = Primitive('U8')


def _is_integer(value) -> bool:
    if isinstance(value, str):
        return value.isdecimal()
    return isinstance(value, numbers.Integral) and not isinstance(value, (bool, numpy.bool_))


_VALUE_CHECKS: typing.Mapping[str, typing.Tuple[typing.Callable[[typing.Any], bool], str]] = {
    'Address': (is_valid_sui_address, 'valid SUI address'),
    'Bool': (lambda value: isinstance(value, bool), 'boolean'),
    'U8': (_is_integer, 'number'),
    'U16': (_is_integer, 'number'),
    'U32': (_is_integer, 'number'),
    'U64': (_is_integer, 'number'),
    'U128': (_is_integer, 'number'),
    'U256': (_is_integer, 'number'),
}


def _check_value(name: str, value):
    if value is NO_VALUE:
        return
    check, expected = _VALUE_CHECKS[name]
    if not check(value):
        raise TypeMismatchError(f'Expect {value!r} to be {expected}, received {type(value).__name__}.',
                                expected=expected, value=value)


def as_sequence(value) -> typing.Optional[list]:
    """Get *value* as a list if it is an array-like caller value, else None."""
    if isinstance(value, numpy.ndarray):
        return value.tolist() if value.ndim == 1 else None
    if isinstance(value, (bytes, bytearray)):
        return list(value)
    if isinstance(value, collections.abc.Sequence) and not isinstance(value, str):
        return list(value)
    return None


@functools.singledispatch
def _resolve(normalized, resolver: 'TypeResolver', value, decoding: bool) -> str:
    raise UnsupportedTypeError(f'Unknown pure normalized type {normalized!r}.')


@_resolve.register(Primitive)
def _(normalized: Primitive, resolver, value, decoding):
    if normalized.name not in PURE_PRIMITIVES:
        raise UnsupportedTypeError(f'Unknown pure normalized type {normalized.name!r}.')
    _check_value(normalized.name, value)
    return PURE_PRIMITIVES[normalized.name]


@_resolve.register(Vector)
def _(normalized: Vector, resolver, value, decoding):
    # Text for a vector<u8> parameter is taken as a UTF-8 string. The wire bytes
    # are the same as for the byte array.
    if normalized.inner == _BYTE and not decoding and (value is NO_VALUE or isinstance(value, str)):
        return 'string'
    inner_value = NO_VALUE
    if value is not NO_VALUE:
        items = as_sequence(value)
        if items is None:
            raise TypeMismatchError(f'Expect {value!r} to be a array, received {type(value).__name__}.',
                                    expected='array', value=value)
        if items:
            inner_value = items[0]
    inner = _resolve(normalized.inner, resolver, inner_value, decoding)
    name = f'vector<{inner}>'
    if not resolver.registry.has_type(name):
        logger.debug(f'Registering vector type {name!r} on demand.')
    resolver.registry.register_vector_type(name, inner)
    return name


class TypeResolver:
    """Map normalized parameter types to registry type names.

    Struct, reference, and type-parameter types have no ``Pure`` encoding.
    Callers divert struct types (and vectors of structs) to object arguments
    before resolving.
    """

    def __init__(self, registry: BcsRegistry):
        self.registry = registry

    def resolve(self, normalized_type: NormalizedType, value=NO_VALUE, *, decoding: bool = False) -> str:
        """Get the registry type name for *normalized_type*.

        Arguments:
            normalized_type: Declared parameter type.
            value: Caller value used to check the argument and to choose between
                ``string`` and ``vector<u8>``. Omit to resolve structurally.
            decoding: Resolve for decoding wire data. *value* is ignored and
                byte vectors always resolve to ``vector<u8>``.

        Raises:
            UnsupportedTypeError if the type has no ``Pure`` encoding.
            TypeMismatchError if *value* does not fit the type.
        """
        if decoding:
            value = NO_VALUE
        return _resolve(normalized_type, self, value, decoding)
