"""Marshal Move call arguments to wire-level call arguments, and back.

Each declared parameter chooses its wire representation:
    * a struct (or a reference to one) is an ``Object`` argument, looked up by id
    * a vector of structs is an ``ObjVec`` argument, one lookup per id
    * anything else is a ``Pure`` argument, encoded under the resolved type name

Entry functions may declare a trailing ``&mut 0x2::tx_context::TxContext``
parameter. It is supplied by the runtime, so callers never pass a value for it
and no call argument is produced for it.

Object lookups for the arguments of one call are issued concurrently. The
resulting call arguments are always in parameter order, and any failure aborts
the whole call.
"""
from __future__ import annotations

__all__ = ['CallArgSerializer',
           'MOVE_CALL_SER_ERROR',
           'TX_CONTEXT_STRUCT',
           'extract_object_ids',
           'extract_struct_tag',
           'is_tx_context',
           'strip_tx_context']

import asyncio
import logging
import typing

from bcsmarshal.codec import BcsRegistry
from bcsmarshal.exceptions import ArgumentCountError
from bcsmarshal.exceptions import InternalError
from bcsmarshal.exceptions import MalformedObjectArgumentError
from bcsmarshal.provider import negotiate_strategy
from bcsmarshal.provider import ObjectArgStrategy
from bcsmarshal.provider import Provider
from bcsmarshal.resolver import as_sequence
from bcsmarshal.resolver import TypeResolver
from bcsmarshal.schema import default_registry
from bcsmarshal.types import CallArg
from bcsmarshal.types import JsonValue
from bcsmarshal.types import MutableReference
from bcsmarshal.types import normalize_sui_address
from bcsmarshal.types import NormalizedType
from bcsmarshal.types import ObjectArg
from bcsmarshal.types import ObjectCallArg
from bcsmarshal.types import ObjectInfo
from bcsmarshal.types import ObjVecArg
from bcsmarshal.types import parse_normalized_type
from bcsmarshal.types import PureArg
from bcsmarshal.types import Reference
from bcsmarshal.types import Struct
from bcsmarshal.types import StructTag
from bcsmarshal.types import Vector

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

MOVE_CALL_SER_ERROR = 'Move call argument serialization error:'

TX_CONTEXT_STRUCT: typing.Tuple[str, str, str] = ('0x2', 'tx_context', 'TxContext')
"""(address, module, name) of the implicit execution context parameter."""


def extract_struct_tag(normalized: NormalizedType) -> typing.Optional[StructTag]:
    """Get the struct tag of a struct type or of a reference to a struct type."""
    if isinstance(normalized, Struct):
        return normalized.tag
    if isinstance(normalized, (Reference, MutableReference)) and isinstance(normalized.inner, Struct):
        return normalized.inner.tag
    return None


def is_tx_context(parameter: NormalizedType) -> bool:
    return (isinstance(parameter, MutableReference)
            and isinstance(parameter.inner, Struct)
            and parameter.inner.tag.is_type(*TX_CONTEXT_STRUCT))


def strip_tx_context(parameters: typing.Sequence[NormalizedType]) -> typing.List[NormalizedType]:
    """Get the parameters that callers supply, excluding a trailing TxContext."""
    parameters = list(parameters)
    if parameters and is_tx_context(parameters[-1]):
        return parameters[:-1]
    return parameters


def _is_object_vector(normalized: NormalizedType) -> bool:
    return isinstance(normalized, Vector) and isinstance(normalized.inner, Struct)


def _is_object_parameter(normalized: NormalizedType) -> bool:
    return extract_struct_tag(normalized) is not None or _is_object_vector(normalized)


async def _gather_all(coroutines: typing.Iterable[typing.Awaitable]) -> list:
    """Await *coroutines* concurrently and get their results in order.

    If any of them fails, the others are cancelled and reaped before the error
    propagates, so no lookup outlives the call that issued it.
    """
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    try:
        return list(await asyncio.gather(*tasks))
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def extract_object_ids(call_args: typing.Iterable[CallArg]) -> typing.List[str]:
    """Get the ids of all objects referenced by *call_args*, in order.

    ``Pure`` arguments do not contribute.
    """
    return [object_arg.object_id() for call_arg in call_args for object_arg in call_arg.object_args()]


class CallArgSerializer:
    """Convert between caller argument values and wire-level call arguments.

    Arguments:
        provider: Source of function signatures and object metadata.
        registry: BCS type registry. Defaults to the process-wide registry.
    """

    def __init__(self, provider: Provider, registry: BcsRegistry = None):
        self.provider = provider
        if registry is None:
            registry = default_registry()
        self.registry = registry
        self.resolver = TypeResolver(registry)

    async def fetch_parameters(self, package_id: str, module: str, function: str) -> typing.List[NormalizedType]:
        """Get the declared parameter types of a Move function.

        Signatures are fetched for every call. The implicit TxContext parameter
        is still included.
        """
        normalized = await self.provider.get_normalized_move_function(normalize_sui_address(package_id),
                                                                      module,
                                                                      function)
        return [parse_normalized_type(parameter) for parameter in normalized['parameters']]

    async def marshal_arguments(self,
                                parameters: typing.Sequence[NormalizedType],
                                arguments: typing.Sequence[JsonValue],
                                strategy: ObjectArgStrategy = None) -> typing.List[CallArg]:
        """Build the call arguments for the declared *parameters*.

        Arguments:
            parameters: Declared parameter types, possibly ending with TxContext.
            arguments: One caller value per parameter, excluding TxContext.
            strategy: Shared object strategy. Negotiated with the provider if
                not given and any parameter is an object.

        Raises:
            ArgumentCountError if the number of arguments is wrong.
            MalformedObjectArgumentError if an object parameter does not get an
                id (or a sequence of ids).
            TypeMismatchError if a value does not fit its declared type.
            UnsupportedTypeError if a declared type cannot be passed.
        """
        parameters = strip_tx_context(parameters)
        arguments = list(arguments)
        if len(parameters) != len(arguments):
            raise ArgumentCountError(f'{MOVE_CALL_SER_ERROR} expect {len(parameters)} '
                                     f'arguments, received {len(arguments)} arguments')
        if strategy is None and any(_is_object_parameter(parameter) for parameter in parameters):
            strategy = await negotiate_strategy(self.provider)
        call_args = await _gather_all(self.new_call_arg(parameter, argument, strategy)
                                     for parameter, argument in zip(parameters, arguments))
        return list(call_args)

    async def serialize_move_call_arguments(self, txn) -> typing.List[CallArg]:
        """Build the call arguments for a MoveCallTransaction."""
        parameters = await self.fetch_parameters(txn.package_object_id, txn.module, txn.function)
        return await self.marshal_arguments(parameters, txn.arguments)

    async def extract_object_ids(self, txn) -> typing.List[str]:
        """Get the ids of the objects that a MoveCallTransaction passes as arguments."""
        return extract_object_ids(await self.serialize_move_call_arguments(txn))

    async def new_object_arg(self, object_id: str, strategy: ObjectArgStrategy = None) -> ObjectArg:
        """Look up an object and build the argument that references it."""
        if strategy is None:
            strategy = await negotiate_strategy(self.provider)
        info = ObjectInfo.from_response(await self.provider.get_object(object_id))
        return strategy.object_arg(object_id, info)

    async def new_call_arg(self, parameter: NormalizedType, value: JsonValue, strategy: ObjectArgStrategy) -> CallArg:
        if extract_struct_tag(parameter) is not None:
            if not isinstance(value, str):
                raise MalformedObjectArgumentError(
                    f'{MOVE_CALL_SER_ERROR} expect the argument to be an object id string, got {value!r}',
                    expected='object id', value=value)
            logger.debug(f'Object argument {value} for {parameter!r}.')
            return ObjectCallArg(await self.new_object_arg(value, strategy))

        if _is_object_vector(parameter):
            object_ids = as_sequence(value)
            if object_ids is None or isinstance(value, (bytes, bytearray)):
                raise MalformedObjectArgumentError(
                    f'{MOVE_CALL_SER_ERROR} expect {value!r} to be a array, received {type(value).__name__}',
                    expected='array of object ids', value=value)
            for object_id in object_ids:
                if not isinstance(object_id, str):
                    raise MalformedObjectArgumentError(
                        f'{MOVE_CALL_SER_ERROR} expect object id strings in {value!r}, got {object_id!r}',
                        expected='object id', value=object_id)
            logger.debug(f'Object vector argument {object_ids} for {parameter!r}.')
            object_args = await _gather_all(self.new_object_arg(object_id, strategy) for object_id in object_ids)
            return ObjVecArg(tuple(object_args))

        type_name = self.resolver.resolve(parameter, value)
        logger.debug(f'Pure argument {value!r} as {type_name}.')
        return PureArg(self.registry.encode(type_name, value))

    def unmarshal_arguments(self,
                            parameters: typing.Sequence[NormalizedType],
                            call_args: typing.Sequence[CallArg]) -> typing.List[JsonValue]:
        """Recover display values from call arguments.

        Object arguments are replaced by their ids. ``Pure`` arguments are decoded
        under the declared type; ``vector<u8>`` values decode to lists of byte
        values, even if they were supplied as text. Addresses decode to their full-length,
        lower-case, ``0x``-prefixed form, whatever form was supplied.
        """
        parameters = strip_tx_context(parameters)
        call_args = list(call_args)
        if len(parameters) != len(call_args):
            raise ArgumentCountError(f'Expected {len(parameters)} call arguments, received {len(call_args)}.')
        return [self._deserialize_call_arg(parameter, call_arg) for parameter, call_arg in zip(parameters, call_args)]

    async def deserialize_call_args(self, move_call: 'MoveCallTx') -> typing.List[JsonValue]:
        """Recover display values for the arguments of a MoveCallTx."""
        parameters = await self.fetch_parameters(move_call.package.object_id, move_call.module, move_call.function)
        return self.unmarshal_arguments(parameters, move_call.arguments)

    def _deserialize_call_arg(self, parameter: NormalizedType, call_arg: CallArg) -> JsonValue:
        if isinstance(call_arg, ObjectCallArg):
            return call_arg.arg.object_id()
        if isinstance(call_arg, ObjVecArg):
            return [object_arg.object_id() for object_arg in call_arg.args]
        if isinstance(call_arg, PureArg):
            type_name = self.resolver.resolve(parameter, decoding=True)
            return self.registry.decode(type_name, call_arg.data)
        raise InternalError(f'Unhandled call argument {call_arg!r}.')
