"""Register the Sui transaction wire types.

Every type that can appear in a signed transaction shares one registry, so
that call arguments, object references and the transaction envelope are
encoded by the same rules.

The ``*_Deprecated`` family supports older protocol versions that reference a
shared object by id alone, without its initial shared version.
"""
from __future__ import annotations

__all__ = ['default_registry', 'register_sui_types', 'SUI_ADDRESS_LENGTH']

import base64
import binascii
import logging
import typing

from bcsmarshal.codec import BcsReader
from bcsmarshal.codec import BcsRegistry
from bcsmarshal.codec import BcsWriter
from bcsmarshal.exceptions import DecodeError
from bcsmarshal.exceptions import TypeMismatchError

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

SUI_ADDRESS_LENGTH = 20
"""Number of bytes in an address or object id."""


def _write_digest(writer: BcsWriter, value: str):
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise TypeMismatchError(f'Expected a base64 object digest, received {value!r}.',
                                expected='base64 digest', value=value) from e
    writer.write_uleb128(len(data))
    writer.write_bytes(data)


def _read_digest(reader: BcsReader) -> str:
    size = reader.read_uleb128()
    return base64.b64encode(reader.read_bytes(size)).decode('ascii')


def _write_utf8(writer: BcsWriter, value: str):
    if not isinstance(value, str):
        raise TypeMismatchError(f'Expected {value!r} to be a string.', expected='string', value=value)
    data = value.encode('utf-8')
    writer.write_uleb128(len(data))
    writer.write_bytes(data)


def _read_utf8(reader: BcsReader) -> str:
    size = reader.read_uleb128()
    try:
        return reader.read_bytes(size).decode('utf-8')
    except UnicodeDecodeError as e:
        raise DecodeError('utf8string data is not valid UTF-8.') from e


def _register_primitives(registry: BcsRegistry):
    (registry
     .register_vector_type('vector<u8>', 'u8')
     .register_vector_type('vector<u16>', 'u16')
     .register_vector_type('vector<u32>', 'u32')
     .register_vector_type('vector<u64>', 'u64')
     .register_vector_type('vector<u128>', 'u128')
     .register_vector_type('vector<u256>', 'u256')
     .register_vector_type('vector<vector<u8>>', 'vector<u8>')
     .register_address_type('ObjectID', SUI_ADDRESS_LENGTH)
     .register_address_type('SuiAddress', SUI_ADDRESS_LENGTH)
     .register_address_type('address', SUI_ADDRESS_LENGTH)
     .register_type('utf8string', _write_utf8, _read_utf8)
     .register_type('ObjectDigest', _write_digest, _read_digest))

    registry.register_struct_type('SuiObjectRef', {
        'objectId': 'ObjectID',
        'version': 'u64',
        'digest': 'ObjectDigest',
    })


def _register_simple_transactions(registry: BcsRegistry):
    registry.register_struct_type('TransferObjectTx', {
        'recipient': 'SuiAddress',
        'object_ref': 'SuiObjectRef',
    })

    (registry
     .register_vector_type('vector<SuiAddress>', 'SuiAddress')
     .register_vector_type('vector<SuiObjectRef>', 'SuiObjectRef')
     .register_struct_type('PayTx', {
         'coins': 'vector<SuiObjectRef>',
         'recipients': 'vector<SuiAddress>',
         'amounts': 'vector<u64>',
     })
     .register_struct_type('PaySuiTx', {
         'coins': 'vector<SuiObjectRef>',
         'recipients': 'vector<SuiAddress>',
         'amounts': 'vector<u64>',
     })
     .register_struct_type('PayAllSuiTx', {
         'coins': 'vector<SuiObjectRef>',
         'recipient': 'SuiAddress',
     }))

    registry.register_enum_type('Option<u64>', {
        'None': None,
        'Some': 'u64',
    })
    registry.register_struct_type('TransferSuiTx', {
        'recipient': 'SuiAddress',
        'amount': 'Option<u64>',
    })
    registry.register_struct_type('PublishTx', {
        'modules': 'vector<vector<u8>>',
    })


def _register_move_call(registry: BcsRegistry):
    (registry
     .register_struct_type('SharedObjectRef', {
         'objectId': 'ObjectID',
         'initialSharedVersion': 'u64',
     })
     .register_enum_type('ObjectArg', {
         'ImmOrOwned': 'SuiObjectRef',
         'Shared': 'SharedObjectRef',
     })
     .register_vector_type('vector<ObjectArg>', 'ObjectArg')
     .register_enum_type('CallArg', {
         'Pure': 'vector<u8>',
         'Object': 'ObjectArg',
         'ObjVec': 'vector<ObjectArg>',
     }))

    (registry
     .register_enum_type('TypeTag', {
         'bool': None,
         'u8': None,
         'u16': None,
         'u32': None,
         'u64': None,
         'u128': None,
         'u256': None,
         'address': None,
         'signer': None,
         'vector': 'TypeTag',
         'struct': 'StructTag',
     })
     .register_vector_type('vector<TypeTag>', 'TypeTag')
     .register_struct_type('StructTag', {
         'address': 'SuiAddress',
         'module': 'string',
         'name': 'string',
         'typeParams': 'vector<TypeTag>',
     }))

    (registry
     .register_vector_type('vector<CallArg>', 'CallArg')
     .register_struct_type('MoveCallTx', {
         'package': 'SuiObjectRef',
         'module': 'string',
         'function': 'string',
         'typeArguments': 'vector<TypeTag>',
         'arguments': 'vector<CallArg>',
     }))


def _transaction_variants(suffix: str) -> typing.Dict[str, str]:
    return {
        'TransferObject': 'TransferObjectTx',
        'Publish': 'PublishTx',
        'Call': 'MoveCallTx' + suffix,
        'TransferSui': 'TransferSuiTx',
        'Pay': 'PayTx',
        'PaySui': 'PaySuiTx',
        'PayAllSui': 'PayAllSuiTx',
    }


def _register_envelope(registry: BcsRegistry, suffix: str = ''):
    (registry
     .register_enum_type('Transaction' + suffix, _transaction_variants(suffix))
     .register_vector_type(f'vector<Transaction{suffix}>', 'Transaction' + suffix)
     .register_enum_type('TransactionKind' + suffix, {
         'Single': 'Transaction' + suffix,
         'Batch': f'vector<Transaction{suffix}>',
     })
     .register_struct_type('TransactionData' + suffix, {
         'kind': 'TransactionKind' + suffix,
         'sender': 'SuiAddress',
         'gasPayment': 'SuiObjectRef',
         'gasPrice': 'u64',
         'gasBudget': 'u64',
     }))


def _register_deprecated(registry: BcsRegistry):
    # Shared objects referenced by id alone, for protocol versions predating
    # the initial shared version.
    (registry
     .register_enum_type('ObjectArg_Deprecated', {
         'ImmOrOwned': 'SuiObjectRef',
         'Shared_Deprecated': 'ObjectID',
     })
     .register_vector_type('vector<ObjectArg_Deprecated>', 'ObjectArg_Deprecated')
     .register_enum_type('CallArg_Deprecated', {
         'Pure': 'vector<u8>',
         'Object': 'ObjectArg_Deprecated',
         'ObjVec': 'vector<ObjectArg_Deprecated>',
     })
     .register_vector_type('vector<CallArg_Deprecated>', 'CallArg_Deprecated')
     .register_struct_type('MoveCallTx_Deprecated', {
         'package': 'SuiObjectRef',
         'module': 'string',
         'function': 'string',
         'typeArguments': 'vector<TypeTag>',
         'arguments': 'vector<CallArg_Deprecated>',
     }))
    _register_envelope(registry, suffix='_Deprecated')


def register_sui_types(registry: BcsRegistry) -> BcsRegistry:
    """Register the complete Sui transaction schema with *registry*.

    Safe to call more than once for the same registry.
    """
    _register_primitives(registry)
    _register_simple_transactions(registry)
    _register_move_call(registry)
    _register_envelope(registry)
    _register_deprecated(registry)
    return registry


_default_registry: typing.Optional[BcsRegistry] = None


def default_registry() -> BcsRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        logger.info('Preparing the default BCS registry for Sui transaction types.')
        _default_registry = register_sui_types(BcsRegistry())
    return _default_registry
