from enum import Enum
from ipaddress import IPv4Interface, IPv6Interface

from pydantic import BaseModel, ConfigDict


class IpRangeAllocationMode(str, Enum):
    """How an address is chosen from a range."""

    RANDOM = "random"
    SEQUENTIAL = "sequential"
    # IPv6 only, address derived from the VM MAC
    SLAAC_EUI64 = "slaac_eui64"


class IpAddrKind(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class IpRangeDTO(BaseModel):
    """Address pool attached to a region."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    cidr: str
    # CIDR or bare address (older rows)
    gateway: str
    region_id: int
    allocation_mode: IpRangeAllocationMode = IpRangeAllocationMode.SEQUENTIAL
    # Also hand out the IPv4 network and broadcast addresses
    use_full_range: bool = False
    enabled: bool = True


class VmIpAssignmentDTO(BaseModel):
    """Address held by a VM. Soft-deleted rows no longer count as used."""

    model_config = ConfigDict(from_attributes=True)

    id: int = 0
    vm_id: int
    ip_range_id: int
    ip: str
    deleted: bool = False


class AvailableIp(BaseModel):
    """Candidate address picked from a range, not yet reserved."""

    ip: IPv4Interface | IPv6Interface
    gateway: IPv4Interface | IPv6Interface
    range_id: int
    region_id: int
    mode: IpRangeAllocationMode


class AvailableIps(BaseModel):
    """One candidate per address family."""

    ip4: AvailableIp | None = None
    ip6: AvailableIp | None = None
