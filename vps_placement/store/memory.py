"""In-memory store keyed by numeric id, used by tests and local tooling."""

import asyncio
from collections.abc import Iterable

from vps_placement.contracts.dto import (
    HostDiskDTO,
    HostDTO,
    IpRangeDTO,
    VmCustomTemplateDTO,
    VmDTO,
    VmIpAssignmentDTO,
    VmTemplateDTO,
)
from vps_placement.exceptions import AddressConflictError, NotFoundError


class InMemoryPlacementStore:
    """Dict-backed implementation of ``PlacementStore``.

    Rows are returned as copies so callers can't mutate the store by accident.
    Listing order is insertion order.
    """

    def __init__(
        self,
        hosts: Iterable[HostDTO] = (),
        disks: Iterable[HostDiskDTO] = (),
        vms: Iterable[VmDTO] = (),
        templates: Iterable[VmTemplateDTO] = (),
        custom_templates: Iterable[VmCustomTemplateDTO] = (),
        ip_ranges: Iterable[IpRangeDTO] = (),
        assignments: Iterable[VmIpAssignmentDTO] = (),
    ):
        self.hosts: dict[int, HostDTO] = {h.id: h for h in hosts}
        self.disks: dict[int, HostDiskDTO] = {d.id: d for d in disks}
        self.vms: dict[int, VmDTO] = {v.id: v for v in vms}
        self.templates: dict[int, VmTemplateDTO] = {t.id: t for t in templates}
        self.custom_templates: dict[int, VmCustomTemplateDTO] = {
            t.id: t for t in custom_templates
        }
        self.ip_ranges: dict[int, IpRangeDTO] = {r.id: r for r in ip_ranges}
        self.assignments: dict[int, VmIpAssignmentDTO] = {}
        self._lock = asyncio.Lock()
        for assignment in assignments:
            self._insert(assignment)

    def add_host(self, host: HostDTO) -> None:
        self.hosts[host.id] = host

    def add_disk(self, disk: HostDiskDTO) -> None:
        self.disks[disk.id] = disk

    def add_vm(self, vm: VmDTO) -> None:
        self.vms[vm.id] = vm

    def add_template(self, template: VmTemplateDTO) -> None:
        self.templates[template.id] = template

    def add_custom_template(self, template: VmCustomTemplateDTO) -> None:
        self.custom_templates[template.id] = template

    def add_ip_range(self, ip_range: IpRangeDTO) -> None:
        self.ip_ranges[ip_range.id] = ip_range

    async def list_hosts(self) -> list[HostDTO]:
        return [h.model_copy() for h in self.hosts.values()]

    async def get_host(self, host_id: int) -> HostDTO:
        return self._get(self.hosts, "host", host_id)

    async def list_vms_on_host(self, host_id: int) -> list[VmDTO]:
        return [v.model_copy() for v in self.vms.values() if v.host_id == host_id]

    async def list_host_disks(self, host_id: int) -> list[HostDiskDTO]:
        return [d.model_copy() for d in self.disks.values() if d.host_id == host_id]

    async def list_vm_templates(self) -> list[VmTemplateDTO]:
        return [t.model_copy() for t in self.templates.values()]

    async def get_vm_template(self, template_id: int) -> VmTemplateDTO:
        return self._get(self.templates, "vm template", template_id)

    async def get_custom_vm_template(self, template_id: int) -> VmCustomTemplateDTO:
        return self._get(self.custom_templates, "custom vm template", template_id)

    async def list_ip_range_in_region(self, region_id: int) -> list[IpRangeDTO]:
        return [r.model_copy() for r in self.ip_ranges.values() if r.region_id == region_id]

    async def get_ip_range(self, range_id: int) -> IpRangeDTO:
        return self._get(self.ip_ranges, "ip range", range_id)

    async def list_vm_ip_assignments_in_range(self, range_id: int) -> list[VmIpAssignmentDTO]:
        return [a.model_copy() for a in self.assignments.values() if a.ip_range_id == range_id]

    async def insert_vm_ip_assignment(self, assignment: VmIpAssignmentDTO) -> int:
        async with self._lock:
            return self._insert(assignment)

    def _insert(self, assignment: VmIpAssignmentDTO) -> int:
        if not assignment.deleted:
            for existing in self.assignments.values():
                if (
                    not existing.deleted
                    and existing.ip_range_id == assignment.ip_range_id
                    and existing.ip == assignment.ip
                ):
                    raise AddressConflictError(assignment.ip_range_id, assignment.ip)

        new_id = max(self.assignments, default=0) + 1
        self.assignments[new_id] = assignment.model_copy(update={"id": new_id})
        return new_id

    @staticmethod
    def _get(table: dict, kind: str, key: int):
        try:
            return table[key].model_copy()
        except KeyError:
            raise NotFoundError(kind, key) from None
