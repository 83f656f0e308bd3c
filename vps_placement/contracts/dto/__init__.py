"""Data transfer objects exchanged with the store and the ordering workflow."""

from .host import CpuArch, CpuFeature, CpuMfg, DiskInterface, DiskType, HostDiskDTO, HostDTO
from .network import (
    AvailableIp,
    AvailableIps,
    IpAddrKind,
    IpRangeAllocationMode,
    IpRangeDTO,
    VmIpAssignmentDTO,
)
from .pricing import CustomTemplateDiskParams, CustomTemplateParams, RegionRef
from .vm import VmCustomTemplateDTO, VmDTO, VmResourceSpec, VmTemplateDTO

__all__ = [
    "AvailableIp",
    "AvailableIps",
    "CpuArch",
    "CpuFeature",
    "CpuMfg",
    "CustomTemplateDiskParams",
    "CustomTemplateParams",
    "DiskInterface",
    "DiskType",
    "HostDTO",
    "HostDiskDTO",
    "IpAddrKind",
    "IpRangeAllocationMode",
    "IpRangeDTO",
    "RegionRef",
    "VmCustomTemplateDTO",
    "VmDTO",
    "VmIpAssignmentDTO",
    "VmResourceSpec",
    "VmTemplateDTO",
]
