"""bcsmarshal data model.

Move call description:
    * normalized types describe the declared parameters of a Move function, as
      reported by the full node
    * call arguments are the wire-level values that fill those parameters
    * object arguments pin the state of an object that a call observes

Tagged unions are modeled as explicit variant classes. The registry forms
(single-key mappings such as ``{'Object': {'Shared': {...}}}``) appear only at
the encode/decode boundary, through the ``encode()`` methods and the
``decode_*()`` functions of this module.
"""
from __future__ import annotations

__all__ = ['CallArg',
           'ImmOrOwnedArg',
           'MutableReference',
           'NormalizedType',
           'ObjectArg',
           'ObjectCallArg',
           'ObjectInfo',
           'ObjVecArg',
           'Primitive',
           'PureArg',
           'Reference',
           'SharedArg',
           'SharedDeprecatedArg',
           'Struct',
           'StructTag',
           'SuiObjectRef',
           'TypeParameter',
           'Vector',
           'decode_call_arg',
           'decode_object_arg',
           'is_valid_sui_address',
           'normalize_sui_address',
           'parse_normalized_type',
           'parse_type_tag']

import abc
import collections.abc
import logging
import string
import typing
from dataclasses import dataclass
from dataclasses import field

from bcsmarshal.exceptions import DecodeError
from bcsmarshal.exceptions import InternalError
from bcsmarshal.exceptions import ObjectNotFoundError
from bcsmarshal.exceptions import UnsupportedTypeError
from bcsmarshal.schema import SUI_ADDRESS_LENGTH

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

ObjectId = typing.NewType('ObjectId', str)
"""Hex text identifying an object, with or without the ``0x`` prefix."""

JsonValue = typing.Union[str, int, float, bool, None, typing.List['JsonValue'], typing.Dict[str, 'JsonValue']]
"""A loosely typed call argument, as supplied by a caller."""


def normalize_sui_address(value: str) -> str:
    """Get the full-length, lower-case, ``0x``-prefixed form of an address."""
    digits = value[2:] if value.lower().startswith('0x') else value
    return '0x' + digits.lower().rjust(2 * SUI_ADDRESS_LENGTH, '0')


def is_valid_sui_address(value) -> bool:
    if not isinstance(value, str):
        return False
    digits = value[2:] if value.lower().startswith('0x') else value
    return len(digits) == 2 * SUI_ADDRESS_LENGTH and all(c in string.hexdigits for c in digits)


# Normalized types.

class NormalizedType(abc.ABC):
    """Declared type of a Move function parameter."""


@dataclass(frozen=True)
class Primitive(NormalizedType):
    name: str


@dataclass(frozen=True)
class Vector(NormalizedType):
    inner: NormalizedType


@dataclass(frozen=True)
class StructTag:
    """Identify a Move struct type."""
    address: str
    module: str
    name: str
    type_arguments: typing.Tuple[NormalizedType, ...] = ()

    def is_type(self, address: str, module: str, name: str) -> bool:
        return (normalize_sui_address(self.address) == normalize_sui_address(address)
                and self.module == module
                and self.name == name)

    def encode(self) -> dict:
        """Get the registry form of the ``StructTag`` type."""
        return {
            'address': self.address,
            'module': self.module,
            'name': self.name,
            'typeParams': [_type_tag(t) for t in self.type_arguments],
        }

    def __str__(self):
        text = f'{self.address}::{self.module}::{self.name}'
        if self.type_arguments:
            text += '<{}>'.format(', '.join(repr(t) for t in self.type_arguments))
        return text


@dataclass(frozen=True)
class Struct(NormalizedType):
    tag: StructTag


@dataclass(frozen=True)
class Reference(NormalizedType):
    inner: NormalizedType


@dataclass(frozen=True)
class MutableReference(NormalizedType):
    inner: NormalizedType


@dataclass(frozen=True)
class TypeParameter(NormalizedType):
    index: int


def parse_normalized_type(obj) -> NormalizedType:
    """Convert the JSON representation reported by the full node.

    Examples::

        'U64'
        {'Vector': 'U8'}
        {'MutableReference': {'Struct': {'address': '0x2', 'module': 'tx_context',
                                         'name': 'TxContext', 'typeArguments': []}}}

    Raises:
        UnsupportedTypeError for any other shape.
    """
    if isinstance(obj, str):
        return Primitive(obj)
    if isinstance(obj, collections.abc.Mapping) and len(obj) == 1:
        (kind, inner), = obj.items()
        if kind == 'Vector':
            return Vector(parse_normalized_type(inner))
        if kind == 'Reference':
            return Reference(parse_normalized_type(inner))
        if kind == 'MutableReference':
            return MutableReference(parse_normalized_type(inner))
        if kind == 'TypeParameter' and isinstance(inner, int):
            return TypeParameter(inner)
        if kind == 'Struct' and isinstance(inner, collections.abc.Mapping):
            try:
                tag = StructTag(address=inner['address'],
                                module=inner['module'],
                                name=inner['name'],
                                type_arguments=tuple(parse_normalized_type(t)
                                                     for t in inner.get('typeArguments', ())))
            except KeyError as e:
                raise UnsupportedTypeError(f'Incomplete struct type {obj!r}.') from e
            return Struct(tag)
    raise UnsupportedTypeError(f'Unknown normalized type {obj!r}.')


# Type tags.

_TYPE_TAG_PRIMITIVES = ('bool', 'u8', 'u16', 'u32', 'u64', 'u128', 'u256', 'address', 'signer')


def _type_tag(normalized: NormalizedType) -> dict:
    """Get the registry form of ``TypeTag`` for a concrete normalized type."""
    if isinstance(normalized, Primitive):
        name = normalized.name.lower()
        if name not in _TYPE_TAG_PRIMITIVES:
            raise UnsupportedTypeError(f'No type tag for primitive {normalized.name!r}.')
        return {name: None}
    if isinstance(normalized, Vector):
        return {'vector': _type_tag(normalized.inner)}
    if isinstance(normalized, Struct):
        return {'struct': normalized.tag.encode()}
    raise UnsupportedTypeError(f'{normalized!r} cannot be used as a type argument.')


def _split_type_arguments(text: str) -> typing.List[str]:
    parts = []
    depth = 0
    start = 0
    for position, char in enumerate(text):
        if char == '<':
            depth += 1
        elif char == '>':
            depth -= 1
            if depth < 0:
                raise UnsupportedTypeError(f'Unbalanced type arguments in {text!r}.')
        elif char == ',' and depth == 0:
            parts.append(text[start:position])
            start = position + 1
    if depth != 0:
        raise UnsupportedTypeError(f'Unbalanced type arguments in {text!r}.')
    parts.append(text[start:])
    return [part.strip() for part in parts]


def parse_type_tag(text: str) -> dict:
    """Parse a Move type string into the registry form of ``TypeTag``.

    Accepts primitives (``u64``), vectors (``vector<u8>``) and struct types
    with nested type parameters (``0x2::coin::Coin<0x2::sui::SUI>``).
    """
    text = text.strip()
    if text in _TYPE_TAG_PRIMITIVES:
        return {text: None}
    if text.startswith('vector<') and text.endswith('>'):
        return {'vector': parse_type_tag(text[len('vector<'):-1])}
    parts = text.split('::', 2)
    if len(parts) != 3 or not all(parts):
        raise UnsupportedTypeError(f'Invalid type tag {text!r}.')
    address, module, rest = parts
    opening = rest.find('<')
    if opening == -1:
        name = rest
        type_params = []
    else:
        if not rest.endswith('>'):
            raise UnsupportedTypeError(f'Invalid type tag {text!r}.')
        name = rest[:opening]
        type_params = [parse_type_tag(part) for part in _split_type_arguments(rest[opening + 1:-1])]
    return {'struct': {'address': normalize_sui_address(address),
                       'module': module,
                       'name': name,
                       'typeParams': type_params}}


# Object references.

@dataclass(frozen=True)
class SuiObjectRef:
    object_id: str
    version: int
    digest: str

    def encode(self) -> dict:
        return {'objectId': self.object_id, 'version': self.version, 'digest': self.digest}

    @classmethod
    def decode(cls, encoded: typing.Mapping) -> 'SuiObjectRef':
        try:
            return cls(object_id=encoded['objectId'],
                       version=int(encoded['version']),
                       digest=encoded['digest'])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f'Bad object reference {encoded!r}.') from e


class ObjectArg(abc.ABC):
    """An object argument to a Move call."""

    @abc.abstractmethod
    def object_id(self) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def encode(self) -> dict:
        """Get the registry form of the ``ObjectArg`` (or ``ObjectArg_Deprecated``) type."""
        raise NotImplementedError

    def is_legacy(self) -> bool:
        return False


@dataclass(frozen=True)
class ImmOrOwnedArg(ObjectArg):
    reference: SuiObjectRef

    def object_id(self) -> str:
        return self.reference.object_id

    def encode(self) -> dict:
        return {'ImmOrOwned': self.reference.encode()}


@dataclass(frozen=True)
class SharedArg(ObjectArg):
    shared_object_id: str
    initial_shared_version: int

    def object_id(self) -> str:
        return self.shared_object_id

    def encode(self) -> dict:
        return {'Shared': {'objectId': self.shared_object_id,
                           'initialSharedVersion': self.initial_shared_version}}


@dataclass(frozen=True)
class SharedDeprecatedArg(ObjectArg):
    shared_object_id: str

    def object_id(self) -> str:
        return self.shared_object_id

    def encode(self) -> dict:
        return {'Shared_Deprecated': self.shared_object_id}

    def is_legacy(self) -> bool:
        return True


def decode_object_arg(encoded: typing.Mapping) -> ObjectArg:
    """Rebuild an ObjectArg variant from its registry form."""
    if not isinstance(encoded, collections.abc.Mapping) or len(encoded) != 1:
        raise DecodeError(f'Not an ObjectArg: {encoded!r}')
    (variant, payload), = encoded.items()
    if variant == 'ImmOrOwned':
        return ImmOrOwnedArg(SuiObjectRef.decode(payload))
    if variant == 'Shared':
        try:
            return SharedArg(payload['objectId'], int(payload['initialSharedVersion']))
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f'Bad shared object reference {payload!r}.') from e
    if variant == 'Shared_Deprecated':
        return SharedDeprecatedArg(payload)
    raise DecodeError(f'Unknown ObjectArg variant {variant!r}.')


# Call arguments.

class CallArg(abc.ABC):
    """A wire-level argument to a Move call."""

    @abc.abstractmethod
    def encode(self) -> dict:
        """Get the registry form of the ``CallArg`` (or ``CallArg_Deprecated``) type."""
        raise NotImplementedError

    def object_args(self) -> typing.Tuple[ObjectArg, ...]:
        return ()

    def is_legacy(self) -> bool:
        """Whether the argument can only be encoded with the deprecated schema."""
        return any(arg.is_legacy() for arg in self.object_args())

    def type_name(self) -> str:
        return 'CallArg_Deprecated' if self.is_legacy() else 'CallArg'


@dataclass(frozen=True)
class PureArg(CallArg):
    data: bytes

    def encode(self) -> dict:
        return {'Pure': list(self.data)}


@dataclass(frozen=True)
class ObjectCallArg(CallArg):
    arg: ObjectArg

    def object_args(self):
        return (self.arg,)

    def encode(self) -> dict:
        return {'Object': self.arg.encode()}


@dataclass(frozen=True)
class ObjVecArg(CallArg):
    args: typing.Tuple[ObjectArg, ...] = field(default_factory=tuple)

    def object_args(self):
        return tuple(self.args)

    def encode(self) -> dict:
        return {'ObjVec': [arg.encode() for arg in self.args]}


def decode_call_arg(encoded: typing.Mapping) -> CallArg:
    """Rebuild a CallArg variant from its registry form."""
    if not isinstance(encoded, collections.abc.Mapping) or len(encoded) != 1:
        raise DecodeError(f'Not a CallArg: {encoded!r}')
    (variant, payload), = encoded.items()
    if variant == 'Pure':
        return PureArg(bytes(payload))
    if variant == 'Object':
        return ObjectCallArg(decode_object_arg(payload))
    if variant == 'ObjVec':
        return ObjVecArg(tuple(decode_object_arg(item) for item in payload))
    raise DecodeError(f'Unknown CallArg variant {variant!r}.')


# Object metadata reported by the provider.

@dataclass(frozen=True)
class ObjectInfo:
    """The parts of a ``get_object`` response needed to reference the object.

    Attributes:
        reference: The current (id, version, digest) of the object.
        is_shared: Whether the owner is ``Shared``.
        initial_shared_version: Version at which the object became shared,
            if reported. Older nodes report a bare ``'Shared'`` owner without it.
    """
    reference: SuiObjectRef
    is_shared: bool = False
    initial_shared_version: typing.Optional[int] = None

    @classmethod
    def from_response(cls, response: typing.Mapping) -> 'ObjectInfo':
        status = response.get('status')
        if status != 'Exists':
            raise ObjectNotFoundError(f'Object lookup returned status {status!r}: {response.get("details")!r}')
        try:
            details = response['details']
            reference = SuiObjectRef.decode(details['reference'])
        except (KeyError, TypeError, DecodeError) as e:
            raise InternalError(f'Unexpected object response format: {response!r}') from e
        owner = details.get('owner')
        if owner == 'Shared':
            return cls(reference=reference, is_shared=True)
        if isinstance(owner, collections.abc.Mapping) and 'Shared' in owner:
            shared = owner['Shared']
            initial = None
            if isinstance(shared, collections.abc.Mapping) and shared.get('initial_shared_version') is not None:
                initial = int(shared['initial_shared_version'])
            return cls(reference=reference, is_shared=True, initial_shared_version=initial)
        return cls(reference=reference)
