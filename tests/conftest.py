"""Shared fixtures for bcsmarshal tests.

The fake provider answers full node queries from in-memory tables.
"""
import asyncio
import base64
import logging

import pytest
from bcsmarshal.codec import BcsRegistry
from bcsmarshal.marshal import CallArgSerializer
from bcsmarshal.schema import register_sui_types
from bcsmarshal.types import normalize_sui_address

logger = logging.getLogger(__name__)
logger.debug('Importing {}'.format(__name__))

DIGEST = base64.b64encode(bytes(range(32))).decode('ascii')


class FakeProvider:
    """In-memory stand-in for a full node client."""

    def __init__(self, version='0.13.0'):
        self.version = version
        self.functions = {}
        self.objects = {}
        self.delays = {}
        self.object_requests = []
        self.completed_requests = []
        self.version_requests = 0

    def add_function(self, package_id, module, function, parameters):
        key = (normalize_sui_address(package_id), module, function)
        self.functions[key] = {'parameters': list(parameters), 'visibility': 'Public', 'is_entry': True}

    def _add_object(self, object_id, owner, version=1, digest=DIGEST):
        self.objects[object_id] = {
            'status': 'Exists',
            'details': {
                'reference': {'objectId': object_id, 'version': version, 'digest': digest},
                'owner': owner,
            },
        }

    def add_owned(self, object_id, version=1, digest=DIGEST):
        self._add_object(object_id, {'AddressOwner': '0x' + 'a' * 40}, version, digest)

    def add_immutable(self, object_id, version=1, digest=DIGEST):
        self._add_object(object_id, 'Immutable', version, digest)

    def add_shared(self, object_id, initial_shared_version, version=7):
        self._add_object(object_id, {'Shared': {'initial_shared_version': initial_shared_version}}, version)

    def add_legacy_shared(self, object_id, version=7):
        self._add_object(object_id, 'Shared', version)

    async def get_normalized_move_function(self, package_id, module, function):
        return self.functions[(package_id, module, function)]

    async def get_object(self, object_id):
        self.object_requests.append(object_id)
        await asyncio.sleep(self.delays.get(object_id, 0))
        self.completed_requests.append(object_id)
        if object_id not in self.objects:
            return {'status': 'NotExists', 'details': object_id}
        return self.objects[object_id]

    async def get_rpc_api_version(self):
        self.version_requests += 1
        return self.version


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry():
    """A registry private to the test, so that on-demand registrations do not leak."""
    return register_sui_types(BcsRegistry())


@pytest.fixture
def serializer(provider, registry):
    return CallArgSerializer(provider, registry=registry)
