from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CpuMfg(str, Enum):
    """CPU manufacturer.

    UNKNOWN is a wildcard whose meaning depends on where it appears:
    on a VM request it accepts any host, on a host it means the
    manufacturer was never detected.
    """

    UNKNOWN = "unknown"
    INTEL = "intel"
    AMD = "amd"
    APPLE = "apple"
    NVIDIA = "nvidia"
    ARM = "arm"

    @property
    def is_unknown(self) -> bool:
        return self is CpuMfg.UNKNOWN


class CpuArch(str, Enum):
    """CPU architecture, UNKNOWN follows the same rules as CpuMfg.UNKNOWN."""

    UNKNOWN = "unknown"
    X86_64 = "x86_64"
    ARM64 = "arm64"

    @property
    def is_unknown(self) -> bool:
        return self is CpuArch.UNKNOWN


class CpuFeature(str, Enum):
    """CPU feature flags reported by host detection."""

    SSE = "SSE"
    SSE2 = "SSE2"
    SSE3 = "SSE3"
    SSSE3 = "SSSE3"
    SSE4_1 = "SSE4_1"
    SSE4_2 = "SSE4_2"
    AVX = "AVX"
    AVX2 = "AVX2"
    AVX512F = "AVX512F"
    AVX512VNNI = "AVX512VNNI"
    AVX512BF16 = "AVX512BF16"
    AVXVNNI = "AVXVNNI"
    FMA = "FMA"
    F16C = "F16C"
    AES = "AES"
    PCLMULQDQ = "PCLMULQDQ"
    VMX = "VMX"
    SVM = "SVM"
    SHA = "SHA"
    GFNI = "GFNI"
    VAES = "VAES"
    VPCLMULQDQ = "VPCLMULQDQ"
    RNG = "RNG"
    AMX = "AMX"
    SGX = "SGX"


class DiskType(str, Enum):
    HDD = "hdd"
    SSD = "ssd"


class DiskInterface(str, Enum):
    SATA = "sata"
    SCSI = "scsi"
    PCIE = "pcie"


class HostDTO(BaseModel):
    """Physical hypervisor host."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    region_id: int
    name: str = ""
    # Total CPU cores
    cpu: int = Field(ge=0)
    # Total memory in bytes
    memory: int = Field(ge=0)
    cpu_mfg: CpuMfg = CpuMfg.UNKNOWN
    cpu_arch: CpuArch = CpuArch.UNKNOWN
    cpu_features: list[CpuFeature] = Field(default_factory=list)
    # Multipliers applied to raw capacity (>1.0 overcommit, <1.0 headroom)
    load_cpu: float = Field(default=1.0, ge=0)
    load_memory: float = Field(default=1.0, ge=0)
    load_disk: float = Field(default=1.0, ge=0)
    enabled: bool = True


class HostDiskDTO(BaseModel):
    """Storage device attached to a host."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    host_id: int
    name: str = ""
    # Size in bytes
    size: int = Field(ge=0)
    kind: DiskType = DiskType.HDD
    interface: DiskInterface = DiskInterface.SATA
    enabled: bool = True
