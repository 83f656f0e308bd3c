"""Host capacity accounting and host selection.

Capacity snapshots are rebuilt from the store on every call and never cached.
Two concurrent placements can observe the same free slot; the caller's commit
step is responsible for rejecting the loser.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
import ipaddress
import math

import structlog

from vps_placement.contracts.dto import (
    CpuArch,
    CpuFeature,
    CpuMfg,
    CustomTemplateParams,
    DiskInterface,
    DiskType,
    HostDiskDTO,
    HostDTO,
    IpRangeDTO,
    VmDTO,
    VmResourceSpec,
    VmTemplateDTO,
)
from vps_placement.exceptions import NoCapacityError, PlacementError
from vps_placement.store import PlacementStore

logger = structlog.get_logger()


def _ratio(used: float, total: float) -> float:
    if total == 0:
        return 0.0 if used == 0 else math.inf
    return used / total


def _is_live(expires: datetime | None, now: datetime) -> bool:
    if expires is None:
        return True
    # Naive timestamps come back from SQLite and are stored as UTC
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=UTC)
    return expires > now


@dataclass(frozen=True)
class LoadFactors:
    cpu: float
    memory: float
    disk: float


@dataclass
class DiskCapacity:
    """Usage of a single host disk."""

    disk: HostDiskDTO
    load_factor: float
    # Bytes allocated to live VMs pinned to this disk
    usage: int = 0

    def available_capacity(self) -> int:
        return max(0, math.floor(self.disk.size * self.load_factor) - self.usage)

    def load(self) -> float:
        # (usage / size) * (1 / load_factor)
        return _ratio(self.usage, self.disk.size * self.load_factor)

    def matches(self, kind: DiskType, interface: DiskInterface) -> bool:
        return self.disk.kind == kind and self.disk.interface == interface


@dataclass
class IPRangeCapacity:
    """Usage of an address range."""

    ip_range: IpRangeDTO
    # Live assignments in the range
    usage: int = 0

    def available_capacity(self) -> int:
        """Free addresses, ignoring which ones are taken.

        Network, broadcast and gateway are reserved unless the range uses the
        full CIDR, in which case only the gateway is. A malformed CIDR offers
        no capacity.
        """
        try:
            network = ipaddress.ip_network(self.ip_range.cidr, strict=False)
        except ValueError:
            logger.warning(
                "ip_range_cidr_invalid",
                range_id=self.ip_range.id,
                cidr=self.ip_range.cidr,
            )
            return 0
        reserved = 1 if self.ip_range.use_full_range else 3
        return max(0, network.num_addresses - self.usage - reserved)


@dataclass
class HostCapacity:
    """Snapshot of what a host has left.

    ``cpu`` and ``memory`` are the amounts consumed by live VMs, availability
    is derived from the host totals scaled by the load factors.
    """

    host: HostDTO
    load_factor: LoadFactors
    cpu: int = 0
    memory: int = 0
    disks: list[DiskCapacity] = field(default_factory=list)
    ranges: list[IPRangeCapacity] = field(default_factory=list)

    def load(self) -> float:
        """Mean of cpu, memory and disk load. May exceed 1.0 on overcommitted hosts."""
        return (self.cpu_load() + self.memory_load() + self.disk_load()) / 3.0

    def cpu_load(self) -> float:
        return _ratio(self.cpu, self.host.cpu * self.load_factor.cpu)

    def memory_load(self) -> float:
        return _ratio(self.memory, self.host.memory * self.load_factor.memory)

    def disk_load(self) -> float:
        if not self.disks:
            return 0.0
        return sum(d.load() for d in self.disks) / len(self.disks)

    def available_cpu(self) -> int:
        return max(0, math.floor(self.host.cpu * self.load_factor.cpu) - self.cpu)

    def available_memory(self) -> int:
        # float intermediate keeps multi-terabyte hosts from rounding badly
        limit = math.floor(float(self.host.memory) * self.load_factor.memory)
        return max(0, limit - self.memory)

    def has_free_ip(self) -> bool:
        return any(r.available_capacity() >= 1 for r in self.ranges)

    def pick_disk(self, request: VmResourceSpec) -> DiskCapacity | None:
        """Return the least loaded disk of the requested kind that fits the request."""
        for disk in self.disks:
            if (
                disk.matches(request.disk_type, request.disk_interface)
                and disk.available_capacity() >= request.disk_size
            ):
                return disk
        return None

    def can_accommodate(self, request: VmResourceSpec) -> bool:
        """Check whether a VM with the requested resources fits on this host.

        CPU constraints are read from the request side: UNKNOWN accepts any
        host, a concrete value needs the same value on the host (a host that
        reports UNKNOWN does not qualify).
        """
        if not request.cpu_mfg.is_unknown and request.cpu_mfg != self.host.cpu_mfg:
            return False
        if not request.cpu_arch.is_unknown and request.cpu_arch != self.host.cpu_arch:
            return False
        if not set(request.cpu_features).issubset(self.host.cpu_features):
            return False

        return (
            self.available_cpu() >= request.cpu
            and self.available_memory() >= request.memory
            and self.pick_disk(request) is not None
            and self.has_free_ip()
        )


def host_matches_cpu_limits(
    host: HostDTO,
    cpu_mfg: CpuMfg,
    cpu_arch: CpuArch,
    cpu_features: Iterable[CpuFeature],
) -> bool:
    """CPU filter for custom template limits.

    Unlike ``HostCapacity.can_accommodate`` a host that reports UNKNOWN is
    kept, since it was never detected rather than known to differ.
    """
    if not cpu_mfg.is_unknown and not host.cpu_mfg.is_unknown and host.cpu_mfg != cpu_mfg:
        return False
    if not cpu_arch.is_unknown and not host.cpu_arch.is_unknown and host.cpu_arch != cpu_arch:
        return False
    return set(cpu_features).issubset(host.cpu_features)


class HostCapacityService:
    """Computes host capacity and picks hosts for new VMs."""

    def __init__(self, store: PlacementStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    async def get_host_capacity(
        self,
        host: HostDTO,
        disk_type: DiskType | None = None,
        disk_interface: DiskInterface | None = None,
    ) -> HostCapacity:
        """Build a capacity snapshot for a host.

        Only live VMs (not deleted, not expired) count. A VM whose template
        can't be loaded is left out of the totals. Disks can be narrowed to a
        kind and interface.
        """
        now = self._clock()
        vms = [
            vm
            for vm in await self.store.list_vms_on_host(host.id)
            if not vm.deleted and _is_live(vm.expires, now)
        ]
        specs = await asyncio.gather(*(self._resolve_spec(vm) for vm in vms))
        usage = [(vm, spec) for vm, spec in zip(vms, specs, strict=True) if spec is not None]

        disks = []
        for disk in await self.store.list_host_disks(host.id):
            if not disk.enabled:
                continue
            if disk_type is not None and disk.kind != disk_type:
                continue
            if disk_interface is not None and disk.interface != disk_interface:
                continue
            disks.append(
                DiskCapacity(
                    disk=disk,
                    load_factor=host.load_disk,
                    usage=sum(spec.disk_size for vm, spec in usage if vm.disk_id == disk.id),
                )
            )
        disks.sort(key=lambda d: d.load())

        ranges = [
            r for r in await self.store.list_ip_range_in_region(host.region_id) if r.enabled
        ]
        range_usage = await asyncio.gather(*(self._count_assignments(r) for r in ranges))

        return HostCapacity(
            host=host,
            load_factor=LoadFactors(
                cpu=host.load_cpu,
                memory=host.load_memory,
                disk=host.load_disk,
            ),
            cpu=sum(spec.cpu for _, spec in usage),
            memory=sum(spec.memory for _, spec in usage),
            disks=disks,
            ranges=[
                IPRangeCapacity(ip_range=r, usage=count)
                for r, count in zip(ranges, range_usage, strict=True)
            ],
        )

    async def get_host_for_template(
        self, region_id: int, request: VmResourceSpec
    ) -> HostCapacity:
        """Pick the least loaded host in a region that can run the request.

        Disks are narrowed to the requested kind and interface; another kind
        is never substituted. Equal loads keep ``list_hosts`` order.

        Raises:
            NoCapacityError: No host in the region can accommodate the request.
        """
        hosts = await self._enabled_hosts({region_id})
        caps = await self._capacities(hosts, request.disk_type, request.disk_interface)
        feasible = [c for c in caps if c.can_accommodate(request)]
        if not feasible:
            logger.info(
                "no_host_for_request",
                region_id=region_id,
                hosts_checked=len(caps),
                cpu=request.cpu,
                memory=request.memory,
                disk_size=request.disk_size,
                disk_type=request.disk_type.value,
                disk_interface=request.disk_interface.value,
            )
            raise NoCapacityError(f"No host in region {region_id} can accommodate the request")

        feasible.sort(key=lambda c: c.load())
        chosen = feasible[0]
        logger.debug(
            "host_selected",
            region_id=region_id,
            host_id=chosen.host.id,
            load=chosen.load(),
            candidates=len(feasible),
        )
        return chosen

    async def list_available_vm_templates(self) -> list[VmTemplateDTO]:
        """List enabled, unexpired templates that fit on at least one host in their region."""
        now = self._clock()
        templates = [
            t
            for t in await self.store.list_vm_templates()
            if t.enabled and _is_live(t.expires, now)
        ]
        if not templates:
            return []

        region_ids = {t.region_id for t in templates}
        hosts = await self._enabled_hosts(region_ids)
        caps = await self._capacities(hosts)

        return [
            t
            for t in templates
            if any(c.host.region_id == t.region_id and c.can_accommodate(t) for c in caps)
        ]

    async def apply_host_capacity_limits(
        self, templates: list[CustomTemplateParams]
    ) -> list[CustomTemplateParams]:
        """Clamp custom template bounds to what a single host can still offer.

        Returns adjusted copies. Disk options that clamp to zero are dropped,
        as are templates left without CPU, memory or disk options.
        """
        if not templates:
            return []

        region_ids = {t.region.id for t in templates}
        hosts = await self._enabled_hosts(region_ids)
        caps = await self._capacities(hosts)

        limited = []
        for template in templates:
            eligible = [
                c
                for c in caps
                if c.host.region_id == template.region.id
                and host_matches_cpu_limits(
                    c.host, template.cpu_mfg, template.cpu_arch, template.cpu_features
                )
            ]
            max_cpu = max((c.available_cpu() for c in eligible), default=0)
            max_memory = max((c.available_memory() for c in eligible), default=0)

            disks = []
            for option in template.disks:
                max_disk = max(
                    (
                        d.available_capacity()
                        for c in eligible
                        for d in c.disks
                        if d.matches(option.disk_type, option.disk_interface)
                    ),
                    default=0,
                )
                max_disk = min(option.max_disk, max_disk)
                if max_disk > 0:
                    disks.append(option.model_copy(update={"max_disk": max_disk}))

            adjusted = template.model_copy(
                update={
                    "max_cpu": min(template.max_cpu, max_cpu),
                    "max_memory": min(template.max_memory, max_memory),
                    "disks": disks,
                }
            )
            if adjusted.max_cpu > 0 and adjusted.max_memory > 0 and adjusted.disks:
                limited.append(adjusted)
            else:
                logger.debug("custom_template_hidden", template_id=template.id)
        return limited

    async def _enabled_hosts(self, region_ids: set[int]) -> list[HostDTO]:
        return [h for h in await self.store.list_hosts() if h.enabled and h.region_id in region_ids]

    async def _capacities(
        self,
        hosts: list[HostDTO],
        disk_type: DiskType | None = None,
        disk_interface: DiskInterface | None = None,
    ) -> list[HostCapacity]:
        results = await asyncio.gather(
            *(self.get_host_capacity(h, disk_type, disk_interface) for h in hosts),
            return_exceptions=True,
        )
        caps = []
        for host, result in zip(hosts, results, strict=True):
            if isinstance(result, PlacementError):
                logger.warning("host_capacity_failed", host_id=host.id, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            caps.append(result)
        return caps

    async def _resolve_spec(self, vm: VmDTO) -> VmResourceSpec | None:
        try:
            if vm.template_id is not None:
                return await self.store.get_vm_template(vm.template_id)
            if vm.custom_template_id is not None:
                return await self.store.get_custom_vm_template(vm.custom_template_id)
        except PlacementError as e:
            logger.warning(
                "vm_template_lookup_failed",
                vm_id=vm.id,
                host_id=vm.host_id,
                error=str(e),
            )
            return None
        logger.warning("vm_without_template", vm_id=vm.id, host_id=vm.host_id)
        return None

    async def _count_assignments(self, ip_range: IpRangeDTO) -> int:
        try:
            assignments = await self.store.list_vm_ip_assignments_in_range(ip_range.id)
        except PlacementError as e:
            logger.warning("ip_range_usage_failed", range_id=ip_range.id, error=str(e))
            return 0
        return sum(1 for a in assignments if not a.deleted)
