"""Storage capability consumed by the placement engine."""

from typing import Protocol

from vps_placement.contracts.dto import (
    HostDiskDTO,
    HostDTO,
    IpRangeDTO,
    VmCustomTemplateDTO,
    VmDTO,
    VmIpAssignmentDTO,
    VmTemplateDTO,
)


class PlacementStore(Protocol):
    """Read/write operations the placement engine needs from persistence.

    Listing methods return raw rows, including disabled, deleted and expired
    ones; filtering is the caller's job. ``get_*`` methods raise
    ``NotFoundError`` when the row does not exist.

    Implementations must refuse a second live (not deleted) assignment of the
    same address within the same range by raising ``AddressConflictError``.
    The engine only produces candidates, so this is the only guard against
    two concurrent orders receiving the same address.
    """

    async def list_hosts(self) -> list[HostDTO]:
        """List all hosts in stable order."""
        ...

    async def get_host(self, host_id: int) -> HostDTO: ...

    async def list_vms_on_host(self, host_id: int) -> list[VmDTO]: ...

    async def list_host_disks(self, host_id: int) -> list[HostDiskDTO]: ...

    async def list_vm_templates(self) -> list[VmTemplateDTO]: ...

    async def get_vm_template(self, template_id: int) -> VmTemplateDTO: ...

    async def get_custom_vm_template(self, template_id: int) -> VmCustomTemplateDTO: ...

    async def list_ip_range_in_region(self, region_id: int) -> list[IpRangeDTO]: ...

    async def get_ip_range(self, range_id: int) -> IpRangeDTO: ...

    async def list_vm_ip_assignments_in_range(self, range_id: int) -> list[VmIpAssignmentDTO]: ...

    async def insert_vm_ip_assignment(self, assignment: VmIpAssignmentDTO) -> int:
        """Persist an assignment and return its new id."""
        ...
