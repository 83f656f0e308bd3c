"""Host placement and IP address allocation engine for the VPS control plane."""

from .provisioner.capacity import HostCapacity, HostCapacityService
from .provisioner.network import NetworkProvisioner
from .provisioner.placement import PlacementCandidate, PlacementService

__all__ = [
    "HostCapacity",
    "HostCapacityService",
    "NetworkProvisioner",
    "PlacementCandidate",
    "PlacementService",
]
