from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .host import CpuArch, CpuFeature, CpuMfg, DiskInterface, DiskType


class VmResourceSpec(BaseModel):
    """Resources a VM needs, shared by catalog and custom templates.

    CPU constraints are request-side: UNKNOWN / empty list accept any host.
    """

    model_config = ConfigDict(from_attributes=True)

    cpu: int = Field(ge=0)
    # Bytes
    memory: int = Field(ge=0)
    disk_size: int = Field(ge=0)
    disk_type: DiskType = DiskType.SSD
    disk_interface: DiskInterface = DiskInterface.PCIE
    cpu_mfg: CpuMfg = CpuMfg.UNKNOWN
    cpu_arch: CpuArch = CpuArch.UNKNOWN
    cpu_features: list[CpuFeature] = Field(default_factory=list)


class VmTemplateDTO(VmResourceSpec):
    """Catalog template offered for sale in a region."""

    id: int
    name: str = ""
    region_id: int
    enabled: bool = True
    expires: datetime | None = None


class VmCustomTemplateDTO(VmResourceSpec):
    """Resources picked by a customer within a custom pricing envelope."""

    id: int
    pricing_id: int = 0


class VmDTO(BaseModel):
    """Provisioned VM, only the fields placement needs."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    host_id: int
    template_id: int | None = None
    custom_template_id: int | None = None
    # The host disk the VM image lives on
    disk_id: int
    mac_address: str = "ff:ff:ff:ff:ff:ff"
    expires: datetime
    deleted: bool = False
