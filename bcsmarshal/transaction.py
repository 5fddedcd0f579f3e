"""Build and encode Move call transactions.

A MoveCallTransaction is the caller's description of a call. Building it
resolves the package reference and the call arguments into a MoveCallTx, which
can be wrapped in TransactionData and encoded through the registry.

Calls that reference shared objects by id alone (older nodes) are encoded with
the ``*_Deprecated`` schema.
"""
from __future__ import annotations

__all__ = ['MoveCallTransaction',
           'MoveCallTx',
           'TransactionData',
           'build_move_call',
           'build_transaction_data',
           'deserialize_move_call',
           'serialize_move_call',
           'serialize_transaction_data']

import asyncio
import logging
import typing
from dataclasses import dataclass
from dataclasses import field

from bcsmarshal.codec import BcsRegistry
from bcsmarshal.exceptions import APIError
from bcsmarshal.exceptions import DecodeError
from bcsmarshal.marshal import CallArgSerializer
from bcsmarshal.marshal import extract_object_ids
from bcsmarshal.schema import default_registry
from bcsmarshal.types import CallArg
from bcsmarshal.types import decode_call_arg
from bcsmarshal.types import JsonValue
from bcsmarshal.types import normalize_sui_address
from bcsmarshal.types import ObjectInfo
from bcsmarshal.types import parse_type_tag
from bcsmarshal.types import SuiObjectRef

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))


@dataclass
class MoveCallTransaction:
    """Describe a Move call in caller terms.

    Attributes:
        package_object_id: Id of the package that defines the function.
        module: Module name.
        function: Function name.
        type_arguments: Type strings (``'0x2::sui::SUI'``) or TypeTag mappings.
        arguments: One value per parameter, excluding an implicit TxContext.
        gas_payment: Id of the coin that pays for gas, if known.
        gas_budget: Maximum gas units.
    """
    package_object_id: str
    module: str
    function: str
    type_arguments: typing.Sequence[typing.Union[str, dict]] = field(default_factory=list)
    arguments: typing.Sequence[JsonValue] = field(default_factory=list)
    gas_payment: typing.Optional[str] = None
    gas_budget: int = 0


@dataclass(frozen=True)
class MoveCallTx:
    package: SuiObjectRef
    module: str
    function: str
    type_arguments: typing.Tuple[dict, ...]
    arguments: typing.Tuple[CallArg, ...]

    def is_legacy(self) -> bool:
        return any(arg.is_legacy() for arg in self.arguments)

    def type_name(self) -> str:
        return 'MoveCallTx_Deprecated' if self.is_legacy() else 'MoveCallTx'

    def encode(self) -> dict:
        return {
            'package': self.package.encode(),
            'module': self.module,
            'function': self.function,
            'typeArguments': list(self.type_arguments),
            'arguments': [arg.encode() for arg in self.arguments],
        }

    @classmethod
    def decode(cls, encoded: typing.Mapping) -> 'MoveCallTx':
        try:
            return cls(package=SuiObjectRef.decode(encoded['package']),
                       module=encoded['module'],
                       function=encoded['function'],
                       type_arguments=tuple(encoded['typeArguments']),
                       arguments=tuple(decode_call_arg(arg) for arg in encoded['arguments']))
        except KeyError as e:
            raise DecodeError(f'Incomplete MoveCallTx {encoded!r}.') from e


@dataclass(frozen=True)
class TransactionData:
    """The transaction record to be signed.

    A single call is a ``Single`` transaction kind; a sequence of calls is a ``Batch``.
    """
    kind: typing.Union[MoveCallTx, typing.Sequence[MoveCallTx]]
    sender: str
    gas_payment: SuiObjectRef
    gas_price: int
    gas_budget: int

    def calls(self) -> typing.Tuple[MoveCallTx, ...]:
        if isinstance(self.kind, MoveCallTx):
            return (self.kind,)
        return tuple(self.kind)

    def is_legacy(self) -> bool:
        return any(call.is_legacy() for call in self.calls())

    def type_name(self) -> str:
        return 'TransactionData_Deprecated' if self.is_legacy() else 'TransactionData'

    def encode(self) -> dict:
        if isinstance(self.kind, MoveCallTx):
            kind = {'Single': {'Call': self.kind.encode()}}
        else:
            kind = {'Batch': [{'Call': call.encode()} for call in self.kind]}
        return {
            'kind': kind,
            'sender': self.sender,
            'gasPayment': self.gas_payment.encode(),
            'gasPrice': self.gas_price,
            'gasBudget': self.gas_budget,
        }


async def build_move_call(serializer: CallArgSerializer, txn: MoveCallTransaction) -> MoveCallTx:
    """Resolve the package reference and call arguments of *txn*."""
    package_response, arguments = await asyncio.gather(
        serializer.provider.get_object(normalize_sui_address(txn.package_object_id)),
        serializer.serialize_move_call_arguments(txn))
    package = ObjectInfo.from_response(package_response).reference
    type_arguments = tuple(parse_type_tag(t) if isinstance(t, str) else dict(t) for t in txn.type_arguments)
    return MoveCallTx(package=package,
                      module=txn.module,
                      function=txn.function,
                      type_arguments=type_arguments,
                      arguments=tuple(arguments))


async def build_transaction_data(serializer: CallArgSerializer,
                                 txn: MoveCallTransaction,
                                 *,
                                 sender: str,
                                 gas_price: int) -> TransactionData:
    """Build a single-call TransactionData.

    The gas coin must be named by the caller and must not also be passed as a
    call argument.
    """
    if txn.gas_payment is None:
        raise APIError('A gas payment object id is required.')
    move_call = await build_move_call(serializer, txn)
    gas_id = normalize_sui_address(txn.gas_payment)
    if gas_id in (normalize_sui_address(object_id) for object_id in extract_object_ids(move_call.arguments)):
        raise APIError(f'Gas object {txn.gas_payment} is also used as a call argument.')
    gas_info = ObjectInfo.from_response(await serializer.provider.get_object(txn.gas_payment))
    return TransactionData(kind=move_call,
                           sender=sender,
                           gas_payment=gas_info.reference,
                           gas_price=gas_price,
                           gas_budget=txn.gas_budget)


def serialize_move_call(move_call: MoveCallTx, registry: BcsRegistry = None) -> bytes:
    if registry is None:
        registry = default_registry()
    return registry.encode(move_call.type_name(), move_call.encode())


def deserialize_move_call(data: bytes, registry: BcsRegistry = None, *, legacy: bool = False) -> MoveCallTx:
    """Decode a MoveCallTx, using the deprecated schema if *legacy* is true."""
    if registry is None:
        registry = default_registry()
    type_name = 'MoveCallTx_Deprecated' if legacy else 'MoveCallTx'
    return MoveCallTx.decode(registry.decode(type_name, data))


def serialize_transaction_data(data: TransactionData, registry: BcsRegistry = None) -> bytes:
    if registry is None:
        registry = default_registry()
    logger.debug(f'Encoding {data.type_name()} with {len(data.calls())} call(s).')
    return registry.encode(data.type_name(), data.encode())
