"""Placement seam used by the ordering workflow.

``plan`` returns a candidate host, disk and address set without reserving
anything. ``commit_ip_assignment`` writes the address through the store,
whose uniqueness constraint decides between racing orders.
"""

from dataclasses import dataclass

import structlog

from vps_placement.contracts.dto import (
    AvailableIp,
    AvailableIps,
    IpRangeAllocationMode,
    VmIpAssignmentDTO,
    VmResourceSpec,
)
from vps_placement.exceptions import NoCapacityError
from vps_placement.logging import placement_context
from vps_placement.store import PlacementStore

from .capacity import DiskCapacity, HostCapacity, HostCapacityService
from .network import NetworkProvisioner

logger = structlog.get_logger()


@dataclass
class PlacementCandidate:
    host: HostCapacity
    disk: DiskCapacity
    ips: AvailableIps


class PlacementService:
    """Combines host selection and address selection for a new VM."""

    def __init__(
        self,
        store: PlacementStore,
        capacity: HostCapacityService,
        network: NetworkProvisioner,
    ):
        self.store = store
        self.capacity = capacity
        self.network = network

    async def plan(
        self,
        region_id: int,
        request: VmResourceSpec,
        order_id: int | None = None,
    ) -> PlacementCandidate:
        """Pick a host, a disk on it and addresses for a VM.

        Args:
            region_id: Region the VM is ordered in.
            request: Resources the VM needs.
            order_id: Order being fulfilled; bound to every log line of the plan.

        Raises:
            NoCapacityError: No host fits the request.
            NoAddressAvailableError: The region has no free address.
            NotFoundError: The region has no enabled IP ranges.
        """
        with placement_context(order_id=order_id, region_id=region_id):
            host = await self.capacity.get_host_for_template(region_id, request)
            disk = host.pick_disk(request)
            if disk is None:
                # can_accommodate already checked this, only reachable if disks changed
                raise NoCapacityError(f"Host {host.host.id} has no disk for the request")

            ips = await self.network.pick_ip_for_region(region_id)
            logger.info(
                "placement_planned",
                host_id=host.host.id,
                disk_id=disk.disk.id,
                ip4=str(ips.ip4.ip) if ips.ip4 else None,
                ip6=str(ips.ip6.ip) if ips.ip6 else None,
            )
            return PlacementCandidate(host=host, disk=disk, ips=ips)

    async def commit_ip_assignment(
        self,
        vm_id: int,
        available_ip: AvailableIp,
        mac_address: str | None = None,
        order_id: int | None = None,
    ) -> VmIpAssignmentDTO:
        """Persist a picked address for a VM.

        SLAAC candidates carry the whole prefix, so the VM's MAC is needed to
        derive the concrete address.

        Raises:
            ValueError: SLAAC candidate without a MAC address.
            AddressConflictError: Another VM already holds the address.
        """
        with placement_context(order_id=order_id, vm_id=vm_id, range_id=available_ip.range_id):
            if available_ip.mode == IpRangeAllocationMode.SLAAC_EUI64:
                if mac_address is None:
                    raise ValueError("MAC address is required for SLAAC assignments")
                address = self.network.calculate_eui64(
                    self.network.parse_mac(mac_address), available_ip.ip
                )
            else:
                address = available_ip.ip.ip

            assignment = VmIpAssignmentDTO(
                vm_id=vm_id,
                ip_range_id=available_ip.range_id,
                ip=str(address),
            )
            ip_range = await self.store.get_ip_range(available_ip.range_id)
            self.network.validate_ip_assignment(assignment, ip_range)

            assignment.id = await self.store.insert_vm_ip_assignment(assignment)
            logger.info("ip_assignment_committed", ip=assignment.ip, assignment_id=assignment.id)
            return assignment
