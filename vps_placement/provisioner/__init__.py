"""Capacity accounting, address allocation and placement planning."""

from .capacity import HostCapacity, HostCapacityService
from .network import NetworkProvisioner
from .placement import PlacementCandidate, PlacementService

__all__ = [
    "HostCapacity",
    "HostCapacityService",
    "NetworkProvisioner",
    "PlacementCandidate",
    "PlacementService",
]
