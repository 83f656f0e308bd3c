"""VM and VM template models."""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from vps_placement.contracts.dto import CpuArch, CpuMfg

from .base import Base


class VmTemplate(Base):
    """Catalog template sold in a region."""

    __tablename__ = "vm_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    region_id: Mapped[int] = mapped_column(Integer, index=True)

    cpu: Mapped[int] = mapped_column(Integer)
    memory: Mapped[int] = mapped_column(BigInteger)
    disk_size: Mapped[int] = mapped_column(BigInteger)
    disk_type: Mapped[str] = mapped_column(String(16))
    disk_interface: Mapped[str] = mapped_column(String(16))
    cpu_mfg: Mapped[str] = mapped_column(String(32), default=CpuMfg.UNKNOWN.value)
    cpu_arch: Mapped[str] = mapped_column(String(32), default=CpuArch.UNKNOWN.value)
    cpu_features: Mapped[list] = mapped_column(JSON, default=list)

    enabled: Mapped[bool] = mapped_column(default=True)
    expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class VmCustomTemplate(Base):
    """Resources a customer picked for a custom VM."""

    __tablename__ = "vm_custom_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pricing_id: Mapped[int] = mapped_column(Integer, default=0)

    cpu: Mapped[int] = mapped_column(Integer)
    memory: Mapped[int] = mapped_column(BigInteger)
    disk_size: Mapped[int] = mapped_column(BigInteger)
    disk_type: Mapped[str] = mapped_column(String(16))
    disk_interface: Mapped[str] = mapped_column(String(16))
    cpu_mfg: Mapped[str] = mapped_column(String(32), default=CpuMfg.UNKNOWN.value)
    cpu_arch: Mapped[str] = mapped_column(String(32), default=CpuArch.UNKNOWN.value)
    cpu_features: Mapped[list] = mapped_column(JSON, default=list)


class Vm(Base):
    """Provisioned VM, pinned to a host disk."""

    __tablename__ = "vms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"), index=True)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("vm_templates.id"))
    custom_template_id: Mapped[int | None] = mapped_column(ForeignKey("vm_custom_templates.id"))
    disk_id: Mapped[int] = mapped_column(ForeignKey("host_disks.id"))
    mac_address: Mapped[str] = mapped_column(String(17), default="ff:ff:ff:ff:ff:ff")
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    deleted: Mapped[bool] = mapped_column(default=False)
