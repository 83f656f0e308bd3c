"""Database models package."""

from .base import Base
from .host import Host, HostDisk
from .network import IpRange, VmIpAssignment
from .vm import Vm, VmCustomTemplate, VmTemplate

__all__ = [
    "Base",
    "Host",
    "HostDisk",
    "IpRange",
    "Vm",
    "VmCustomTemplate",
    "VmIpAssignment",
    "VmTemplate",
]
