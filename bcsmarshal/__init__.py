"""Marshal Move call arguments to their BCS wire representation.

Typical use::

    serializer = CallArgSerializer(provider)
    call_args = await serializer.serialize_move_call_arguments(
        MoveCallTransaction(package_object_id='0x2', module='devnet_nft', function='mint',
                            arguments=['name', 'description', 'https://example.com/nft.png']))

See :mod:`bcsmarshal.marshal` for the dispatch rules and :mod:`bcsmarshal.schema`
for the registered wire types.
"""

__all__ = ['BcsRegistry',
           'CallArgSerializer',
           'MoveCallTransaction',
           'default_registry',
           'extract_object_ids']

from bcsmarshal.codec import BcsRegistry
from bcsmarshal.marshal import CallArgSerializer
from bcsmarshal.marshal import extract_object_ids
from bcsmarshal.schema import default_registry
from bcsmarshal.transaction import MoveCallTransaction
