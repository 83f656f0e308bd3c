"""Unit tests for HostCapacityService against the in-memory store."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tests.factories import (
    GB,
    NOW,
    REGION_ID,
    TB,
    make_assignment,
    make_custom_template,
    make_disk,
    make_host,
    make_ip_range,
    make_template,
    make_vm,
)
from vps_placement.contracts.dto import (
    CpuArch,
    CpuMfg,
    CustomTemplateDiskParams,
    CustomTemplateParams,
    DiskInterface,
    DiskType,
    RegionRef,
)
from vps_placement.exceptions import NoCapacityError, NotFoundError
from vps_placement.provisioner.capacity import HostCapacityService


class TestGetHostCapacity:
    """Capacity snapshots built from live VMs."""

    async def test_empty_host(self, store, capacity_service):
        cap = await capacity_service.get_host_capacity(make_host())

        assert cap.cpu == 0
        assert cap.memory == 0
        assert cap.load() == 0.0
        assert cap.available_cpu() == 6  # noqa: PLR2004
        assert cap.available_memory() == 16 * GB
        assert len(cap.disks) == 1
        assert cap.disks[0].available_capacity() == 30 * TB
        assert [r.ip_range.id for r in cap.ranges] == [1, 2]

    async def test_counts_live_vms(self, store, capacity_service):
        store.add_vm(make_vm(id=1))
        store.add_custom_template(make_custom_template(id=7, cpu=1, memory=GB))
        store.add_vm(make_vm(id=2, template_id=None, custom_template_id=7))

        cap = await capacity_service.get_host_capacity(make_host())

        assert cap.cpu == 3  # noqa: PLR2004
        assert cap.memory == 3 * GB
        assert cap.disks[0].usage == 64 * GB + 32 * GB

    async def test_expired_doesnt_count(self, store, capacity_service):
        store.add_vm(make_vm(id=1, expires=NOW - timedelta(seconds=1)))

        cap = await capacity_service.get_host_capacity(make_host())

        assert cap.cpu == 0
        assert cap.disks[0].usage == 0

    async def test_deleted_doesnt_count(self, store, capacity_service):
        store.add_vm(make_vm(id=1, deleted=True))

        cap = await capacity_service.get_host_capacity(make_host())

        assert cap.cpu == 0

    async def test_missing_template_is_skipped(self, store, capacity_service):
        store.add_vm(make_vm(id=1, template_id=99))
        store.add_vm(make_vm(id=2))

        cap = await capacity_service.get_host_capacity(make_host())

        assert cap.cpu == 2  # noqa: PLR2004

    async def test_disk_filters(self, store, capacity_service):
        store.add_disk(make_disk(id=2, kind=DiskType.HDD, interface=DiskInterface.SATA))
        store.add_disk(make_disk(id=3, enabled=False))

        cap = await capacity_service.get_host_capacity(make_host())
        assert {d.disk.id for d in cap.disks} == {1, 2}

        cap = await capacity_service.get_host_capacity(
            make_host(), disk_type=DiskType.HDD, disk_interface=DiskInterface.SATA
        )
        assert [d.disk.id for d in cap.disks] == [2]

    async def test_disks_sorted_by_load(self, store, capacity_service):
        store.add_disk(make_disk(id=2, size=TB))
        store.add_vm(make_vm(id=1, disk_id=1))

        cap = await capacity_service.get_host_capacity(make_host())

        assert [d.disk.id for d in cap.disks] == [2, 1]

    async def test_range_usage_ignores_deleted(self, store, capacity_service):
        await store.insert_vm_ip_assignment(make_assignment(ip="10.0.0.2"))
        await store.insert_vm_ip_assignment(make_assignment(ip="10.0.0.3", deleted=True))
        store.add_ip_range(make_ip_range(id=3, cidr="10.1.0.0/24", enabled=False))

        cap = await capacity_service.get_host_capacity(make_host())

        usage = {r.ip_range.id: r.usage for r in cap.ranges}
        assert usage == {1: 1, 2: 0}


class TestGetHostForTemplate:
    """Least loaded host selection."""

    async def test_single_host(self, capacity_service):
        cap = await capacity_service.get_host_for_template(REGION_ID, make_template())

        assert cap.host.id == 1

    async def test_single_feasible_host_returned_regardless_of_load(
        self, store, capacity_service
    ):
        store.add_template(make_template(id=2, cpu=4, memory=8 * GB))
        store.add_vm(make_vm(id=1, template_id=2))

        cap = await capacity_service.get_host_for_template(REGION_ID, make_template())

        assert cap.host.id == 1
        assert cap.load() > 0

    async def test_picks_least_loaded(self, store, capacity_service):
        store.add_host(make_host(id=2, name="host-2"))
        store.add_disk(make_disk(id=2, host_id=2))
        store.add_host(make_host(id=3, name="host-3"))
        store.add_disk(make_disk(id=3, host_id=3))
        store.add_vm(make_vm(id=1, host_id=1, disk_id=1))
        store.add_vm(make_vm(id=2, host_id=1, disk_id=1))
        store.add_vm(make_vm(id=3, host_id=3, disk_id=3))

        cap = await capacity_service.get_host_for_template(REGION_ID, make_template())

        assert cap.host.id == 2

    async def test_ties_keep_listing_order(self, store, capacity_service):
        store.add_host(make_host(id=2))
        store.add_disk(make_disk(id=2, host_id=2))

        cap = await capacity_service.get_host_for_template(REGION_ID, make_template())

        assert cap.host.id == 1

    async def test_skips_disabled_and_other_regions(self, store, capacity_service):
        store.hosts[1] = make_host(enabled=False)
        store.add_host(make_host(id=2, region_id=2))
        store.add_disk(make_disk(id=2, host_id=2))

        with pytest.raises(NoCapacityError):
            await capacity_service.get_host_for_template(REGION_ID, make_template())

    async def test_never_substitutes_disk_kind(self, capacity_service):
        request = make_template(disk_type=DiskType.HDD, disk_interface=DiskInterface.SATA)

        with pytest.raises(NoCapacityError):
            await capacity_service.get_host_for_template(REGION_ID, request)

    async def test_request_too_large(self, capacity_service):
        with pytest.raises(NoCapacityError):
            await capacity_service.get_host_for_template(REGION_ID, make_template(cpu=7))

    async def test_failing_host_is_skipped(self, store):
        store.add_host(make_host(id=2))
        store.add_disk(make_disk(id=2, host_id=2))
        service = HostCapacityService(store, clock=lambda: NOW)
        real_list_vms = store.list_vms_on_host

        async def list_vms(host_id):
            if host_id == 1:
                raise NotFoundError("host", host_id)
            return await real_list_vms(host_id)

        store.list_vms_on_host = list_vms

        cap = await service.get_host_for_template(REGION_ID, make_template())

        assert cap.host.id == 2


class TestListAvailableVmTemplates:
    """Storefront template listing."""

    async def test_lists_feasible_templates(self, store, capacity_service):
        store.add_template(make_template(id=2, cpu=64))
        store.add_template(make_template(id=3, enabled=False))
        store.add_template(make_template(id=4, expires=NOW - timedelta(days=1)))
        store.add_template(make_template(id=5, region_id=2))
        store.add_template(make_template(id=6, disk_type=DiskType.HDD))

        templates = await capacity_service.list_available_vm_templates()

        assert [t.id for t in templates] == [1]

    async def test_no_templates(self, store, capacity_service):
        store.templates.clear()

        assert await capacity_service.list_available_vm_templates() == []


def make_params(**overrides) -> CustomTemplateParams:
    data = {
        "id": 1,
        "name": "custom",
        "region": RegionRef(id=REGION_ID, name="mock"),
        "min_cpu": 1,
        "max_cpu": 32,
        "min_memory": GB,
        "max_memory": 64 * GB,
        "disks": [
            CustomTemplateDiskParams(
                min_disk=10 * GB,
                max_disk=100 * TB,
                disk_type=DiskType.SSD,
                disk_interface=DiskInterface.PCIE,
            ),
        ],
    }
    data.update(overrides)
    return CustomTemplateParams(**data)


class TestApplyHostCapacityLimits:
    """Clamping custom template bounds."""

    async def test_empty_input_skips_store(self):
        store = AsyncMock()
        service = HostCapacityService(store)

        assert await service.apply_host_capacity_limits([]) == []
        store.list_hosts.assert_not_called()

    async def test_clamps_to_host_capacity(self, capacity_service):
        original = make_params()

        (limited,) = await capacity_service.apply_host_capacity_limits([original])

        assert limited.max_cpu == 6  # noqa: PLR2004
        assert limited.max_memory == 16 * GB
        assert limited.disks[0].max_disk == 30 * TB
        # input untouched
        assert original.max_cpu == 32  # noqa: PLR2004
        assert original.disks[0].max_disk == 100 * TB

    async def test_keeps_smaller_maximums(self, capacity_service):
        (limited,) = await capacity_service.apply_host_capacity_limits(
            [make_params(max_cpu=2, max_memory=GB)]
        )

        assert limited.max_cpu == 2  # noqa: PLR2004
        assert limited.max_memory == GB

    async def test_drops_unavailable_disk_options(self, capacity_service):
        hdd = CustomTemplateDiskParams(
            min_disk=GB, max_disk=TB, disk_type=DiskType.HDD, disk_interface=DiskInterface.SATA
        )
        params = make_params()
        params.disks.append(hdd)

        (limited,) = await capacity_service.apply_host_capacity_limits([params])

        assert [d.disk_type for d in limited.disks] == [DiskType.SSD]

    async def test_drops_template_without_hosts(self, capacity_service):
        result = await capacity_service.apply_host_capacity_limits(
            [make_params(cpu_mfg=CpuMfg.AMD)]
        )

        assert result == []

    async def test_unknown_host_cpu_is_not_filtered(self, store, capacity_service):
        store.hosts[1] = make_host(cpu_mfg=CpuMfg.UNKNOWN, cpu_arch=CpuArch.UNKNOWN)

        result = await capacity_service.apply_host_capacity_limits(
            [make_params(cpu_mfg=CpuMfg.AMD, cpu_arch=CpuArch.ARM64)]
        )

        assert len(result) == 1

    async def test_drops_template_when_host_full(self, store, capacity_service):
        store.add_template(make_template(id=2, cpu=6, memory=2 * GB))
        store.add_vm(make_vm(id=1, template_id=2))

        result = await capacity_service.apply_host_capacity_limits([make_params()])

        assert result == []
