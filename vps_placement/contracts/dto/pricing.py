from pydantic import BaseModel, Field

from .host import CpuArch, CpuFeature, CpuMfg, DiskInterface, DiskType


class RegionRef(BaseModel):
    id: int
    name: str = ""


class CustomTemplateDiskParams(BaseModel):
    """Disk option of a custom template, sizes in bytes."""

    min_disk: int = Field(ge=0)
    max_disk: int = Field(ge=0)
    disk_type: DiskType
    disk_interface: DiskInterface


class CustomTemplateParams(BaseModel):
    """Bounds a customer may pick from when configuring a custom VM."""

    id: int
    name: str = ""
    region: RegionRef
    min_cpu: int = Field(default=1, ge=0)
    max_cpu: int = Field(ge=0)
    min_memory: int = Field(default=0, ge=0)
    max_memory: int = Field(ge=0)
    cpu_mfg: CpuMfg = CpuMfg.UNKNOWN
    cpu_arch: CpuArch = CpuArch.UNKNOWN
    cpu_features: list[CpuFeature] = Field(default_factory=list)
    disks: list[CustomTemplateDiskParams] = Field(default_factory=list)
