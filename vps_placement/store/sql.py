"""SQLAlchemy async adapter for ``PlacementStore``."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
import structlog

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
from vps_placement.models import (
    Base,
    Host,
    HostDisk,
    IpRange,
    Vm,
    VmCustomTemplate,
    VmIpAssignment,
    VmTemplate,
)

logger = structlog.get_logger()


class SqlPlacementStore:
    """Store backed by a relational database.

    Duplicate live assignments are rejected by the partial unique index on
    ``vm_ip_assignments`` and surface as ``AddressConflictError``.
    """

    def __init__(self, session_maker: async_sessionmaker, engine: AsyncEngine | None = None):
        self._session_maker = session_maker
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlPlacementStore":
        engine = create_async_engine(database_url, echo=echo)
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    async def create_all(self) -> None:
        """Create tables. Meant for tests and local tooling, production uses migrations."""
        if self._engine is None:
            raise RuntimeError("create_all requires a store built with an engine")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def list_hosts(self) -> list[HostDTO]:
        rows = await self._scalars(select(Host).order_by(Host.id))
        return [HostDTO.model_validate(row) for row in rows]

    async def get_host(self, host_id: int) -> HostDTO:
        return HostDTO.model_validate(await self._get(Host, "host", host_id))

    async def list_vms_on_host(self, host_id: int) -> list[VmDTO]:
        rows = await self._scalars(select(Vm).where(Vm.host_id == host_id).order_by(Vm.id))
        return [VmDTO.model_validate(row) for row in rows]

    async def list_host_disks(self, host_id: int) -> list[HostDiskDTO]:
        rows = await self._scalars(
            select(HostDisk).where(HostDisk.host_id == host_id).order_by(HostDisk.id)
        )
        return [HostDiskDTO.model_validate(row) for row in rows]

    async def list_vm_templates(self) -> list[VmTemplateDTO]:
        rows = await self._scalars(select(VmTemplate).order_by(VmTemplate.id))
        return [VmTemplateDTO.model_validate(row) for row in rows]

    async def get_vm_template(self, template_id: int) -> VmTemplateDTO:
        return VmTemplateDTO.model_validate(await self._get(VmTemplate, "vm template", template_id))

    async def get_custom_vm_template(self, template_id: int) -> VmCustomTemplateDTO:
        row = await self._get(VmCustomTemplate, "custom vm template", template_id)
        return VmCustomTemplateDTO.model_validate(row)

    async def list_ip_range_in_region(self, region_id: int) -> list[IpRangeDTO]:
        rows = await self._scalars(
            select(IpRange).where(IpRange.region_id == region_id).order_by(IpRange.id)
        )
        return [IpRangeDTO.model_validate(row) for row in rows]

    async def get_ip_range(self, range_id: int) -> IpRangeDTO:
        return IpRangeDTO.model_validate(await self._get(IpRange, "ip range", range_id))

    async def list_vm_ip_assignments_in_range(self, range_id: int) -> list[VmIpAssignmentDTO]:
        rows = await self._scalars(
            select(VmIpAssignment)
            .where(VmIpAssignment.ip_range_id == range_id)
            .order_by(VmIpAssignment.id)
        )
        return [VmIpAssignmentDTO.model_validate(row) for row in rows]

    async def insert_vm_ip_assignment(self, assignment: VmIpAssignmentDTO) -> int:
        row = VmIpAssignment(
            vm_id=assignment.vm_id,
            ip_range_id=assignment.ip_range_id,
            ip=assignment.ip,
            deleted=assignment.deleted,
        )
        async with self._session_maker() as session:
            session.add(row)
            try:
                await session.flush()
                new_id = row.id
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(
                    "ip_assignment_conflict",
                    range_id=assignment.ip_range_id,
                    ip=assignment.ip,
                    vm_id=assignment.vm_id,
                )
                raise AddressConflictError(assignment.ip_range_id, assignment.ip) from e
            return new_id

    async def _scalars(self, stmt) -> list:
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _get(self, model: type[Base], kind: str, key: int):
        async with self._session_maker() as session:
            row = await session.get(model, key)
        if row is None:
            raise NotFoundError(kind, key)
        return row
