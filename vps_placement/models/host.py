"""Host and host disk models."""

from sqlalchemy import JSON, BigInteger, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from vps_placement.contracts.dto import CpuArch, CpuMfg, DiskInterface, DiskType

from .base import Base


class Host(Base):
    """Hypervisor host - a physical machine VMs are placed on."""

    __tablename__ = "hosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    region_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")

    cpu: Mapped[int] = mapped_column(Integer)
    memory: Mapped[int] = mapped_column(BigInteger)
    cpu_mfg: Mapped[str] = mapped_column(String(32), default=CpuMfg.UNKNOWN.value)
    cpu_arch: Mapped[str] = mapped_column(String(32), default=CpuArch.UNKNOWN.value)
    cpu_features: Mapped[list] = mapped_column(JSON, default=list)

    # Overcommit multipliers
    load_cpu: Mapped[float] = mapped_column(Float, default=1.0)
    load_memory: Mapped[float] = mapped_column(Float, default=1.0)
    load_disk: Mapped[float] = mapped_column(Float, default=1.0)

    enabled: Mapped[bool] = mapped_column(default=True)


class HostDisk(Base):
    """Disk attached to a host."""

    __tablename__ = "host_disks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    size: Mapped[int] = mapped_column(BigInteger)
    kind: Mapped[str] = mapped_column(String(16), default=DiskType.HDD.value)
    interface: Mapped[str] = mapped_column(String(16), default=DiskInterface.SATA.value)
    enabled: Mapped[bool] = mapped_column(default=True)
