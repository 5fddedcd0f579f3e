"""Collaborator interfaces and object reference resolution.

The Provider protocol describes the full node queries needed to marshal call
arguments. Implementations (a JSON-RPC client, a test double, ...) live
outside of this package.

Shared objects are referenced differently depending on the protocol version of
the node: older nodes take the object id alone, newer nodes require the version
at which the object became shared. The choice is made once per call by
selecting a strategy from the reported RPC API version.
"""
from __future__ import annotations

__all__ = ['LegacySharedObjectStrategy',
           'ObjectArgStrategy',
           'Provider',
           'SHARED_OBJECT_API_THRESHOLD',
           'SharedObjectStrategy',
           'negotiate_strategy',
           'parse_rpc_api_version',
           'select_strategy',
           'should_use_old_shared_object_api']

import abc
import logging
import re
import typing

from bcsmarshal.exceptions import ProtocolError
from bcsmarshal.types import ImmOrOwnedArg
from bcsmarshal.types import ObjectArg
from bcsmarshal.types import ObjectInfo
from bcsmarshal.types import SharedArg
from bcsmarshal.types import SharedDeprecatedArg

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

SHARED_OBJECT_API_THRESHOLD: typing.Tuple[int, int, int] = (0, 13, 0)
"""First RPC API version that references shared objects by initial shared version."""

RpcApiVersion = typing.Tuple[int, int, int]


class Provider(typing.Protocol):
    """Full node queries consumed by the argument marshaller.

    Errors raised by implementations propagate to the caller unaltered.
    """

    async def get_normalized_move_function(self, package_id: str, module: str, function: str) -> typing.Mapping:
        """Get the normalized function signature.

        The result is a mapping with (at least) a *parameters* member: the list
        of normalized parameter types in JSON form.
        """
        ...

    async def get_object(self, object_id: str) -> typing.Mapping:
        """Get the current object metadata (``status`` and ``details``)."""
        ...

    async def get_rpc_api_version(self) -> typing.Optional[str]:
        """Get the RPC API version of the node, such as ``'0.12.2'``, if known."""
        ...


_VERSION_PATTERN = re.compile(r'^v?(\d+)\.(\d+)\.(\d+)')


def parse_rpc_api_version(version: typing.Optional[str]) -> typing.Optional[RpcApiVersion]:
    """Get (major, minor, patch) from a version string, or None if unavailable."""
    if version is None:
        return None
    match = _VERSION_PATTERN.match(version.strip())
    if match is None:
        logger.warning(f'Could not parse RPC API version {version!r}.')
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def should_use_old_shared_object_api(version: typing.Optional[RpcApiVersion]) -> bool:
    """Whether shared objects must be referenced with the deprecated schema.

    An unknown version is assumed to be current.
    """
    return version is not None and tuple(version) < SHARED_OBJECT_API_THRESHOLD


class ObjectArgStrategy(abc.ABC):
    """Build the ObjectArg for an object, given its metadata."""

    def object_arg(self, object_id: str, info: ObjectInfo) -> ObjectArg:
        if info.is_shared:
            return self.shared_object_arg(object_id, info)
        return ImmOrOwnedArg(info.reference)

    @abc.abstractmethod
    def shared_object_arg(self, object_id: str, info: ObjectInfo) -> ObjectArg:
        raise NotImplementedError


class SharedObjectStrategy(ObjectArgStrategy):
    """Reference shared objects with their initial shared version."""

    def shared_object_arg(self, object_id: str, info: ObjectInfo) -> ObjectArg:
        if info.initial_shared_version is None:
            raise ProtocolError(f'Shared object {object_id} was reported without an initial shared version.')
        return SharedArg(object_id, info.initial_shared_version)


class LegacySharedObjectStrategy(ObjectArgStrategy):
    """Reference shared objects by id alone."""

    def shared_object_arg(self, object_id: str, info: ObjectInfo) -> ObjectArg:
        return SharedDeprecatedArg(object_id)


def select_strategy(version: typing.Optional[RpcApiVersion]) -> ObjectArgStrategy:
    if should_use_old_shared_object_api(version):
        return LegacySharedObjectStrategy()
    return SharedObjectStrategy()


async def negotiate_strategy(provider: Provider) -> ObjectArgStrategy:
    """Query the node version and select the shared object strategy."""
    reported = await provider.get_rpc_api_version()
    strategy = select_strategy(parse_rpc_api_version(reported))
    logger.info(f'RPC API version {reported!r}: using {type(strategy).__name__}.')
    return strategy
