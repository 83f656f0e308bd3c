import random

import pytest

from vps_placement.config import Settings
from vps_placement.provisioner.capacity import HostCapacityService
from vps_placement.provisioner.network import NetworkProvisioner
from vps_placement.provisioner.placement import PlacementService

from .factories import NOW, mock_store


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def store():
    """In-memory store seeded with the mock region."""
    return mock_store()


@pytest.fixture
def capacity_service(store):
    return HostCapacityService(store, clock=lambda: NOW)


@pytest.fixture
def network(store, settings):
    return NetworkProvisioner(store, settings=settings, rng=random.Random(1234))


@pytest.fixture
def placement(store, capacity_service, network):
    return PlacementService(store, capacity_service, network)
