"""IP range and IP assignment models."""

from sqlalchemy import ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from vps_placement.contracts.dto import IpRangeAllocationMode

from .base import Base


class IpRange(Base):
    """Address pool attached to a region."""

    __tablename__ = "ip_ranges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cidr: Mapped[str] = mapped_column(String(64))
    gateway: Mapped[str] = mapped_column(String(64))
    region_id: Mapped[int] = mapped_column(Integer, index=True)
    allocation_mode: Mapped[str] = mapped_column(
        String(32), default=IpRangeAllocationMode.SEQUENTIAL.value
    )
    use_full_range: Mapped[bool] = mapped_column(default=False)
    enabled: Mapped[bool] = mapped_column(default=True)


class VmIpAssignment(Base):
    """Address held by a VM.

    Only one live (not deleted) row may exist per address within a range.
    Concurrent allocators race for the same candidate and this index decides
    the winner.
    """

    __tablename__ = "vm_ip_assignments"
    __table_args__ = (
        Index(
            "uq_vm_ip_assignments_live_ip",
            "ip_range_id",
            "ip",
            unique=True,
            postgresql_where=text("NOT deleted"),
            sqlite_where=text("deleted = 0"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vm_id: Mapped[int] = mapped_column(ForeignKey("vms.id"), index=True)
    ip_range_id: Mapped[int] = mapped_column(ForeignKey("ip_ranges.id"), index=True)
    ip: Mapped[str] = mapped_column(String(64))
    deleted: Mapped[bool] = mapped_column(default=False)
