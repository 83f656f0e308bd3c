"""Address selection from a region's IP ranges.

Picked addresses are candidates. They become reservations only once the
assignment row is written; the store rejects a second live assignment of the
same address, which is what settles races between concurrent orders.
"""

from ipaddress import (
    IPv4Address,
    IPv4Interface,
    IPv4Network,
    IPv6Address,
    IPv6Interface,
    IPv6Network,
    ip_address,
    ip_interface,
    ip_network,
)
import random

import structlog

from vps_placement.config import Settings, get_settings
from vps_placement.contracts.dto import (
    AvailableIp,
    AvailableIps,
    IpAddrKind,
    IpRangeAllocationMode,
    IpRangeDTO,
    VmIpAssignmentDTO,
)
from vps_placement.exceptions import (
    AddressOutOfRangeError,
    InvalidCidrError,
    InvalidGatewayError,
    NoAddressAvailableError,
    NotFoundError,
    PlacementError,
    UnsupportedOperationError,
)
from vps_placement.store import PlacementStore

logger = structlog.get_logger()

IpNetwork = IPv4Network | IPv6Network
IpInterface = IPv4Interface | IPv6Interface
IpAddress = IPv4Address | IPv6Address


class NetworkProvisioner:
    """Picks addresses for VMs according to each range's allocation mode."""

    def __init__(
        self,
        store: PlacementStore,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        settings = settings or get_settings()
        self.max_random_attempts = settings.random_pick_max_attempts
        self._rng = rng or random.Random()

    async def pick_ip_for_region(self, region_id: int) -> AvailableIps:
        return await self.pick_ip_kind_for_region(region_id)

    async def pick_ip_kind_for_region(
        self, region_id: int, kind: IpAddrKind | None = None
    ) -> AvailableIps:
        """Pick at most one IPv4 and one IPv6 address in a region.

        Ranges are tried in random order so load spreads across ranges of the
        same family. A range that fails is logged and the next one is tried.

        Args:
            region_id: Region to allocate in.
            kind: Restrict to a single address family.

        Raises:
            NotFoundError: The region has no enabled ranges.
            NoAddressAvailableError: No range produced an address.
        """
        ranges = [r for r in await self.store.list_ip_range_in_region(region_id) if r.enabled]
        if not ranges:
            raise NotFoundError("ip ranges for region", region_id)

        by_family: dict[int, list[IpRangeDTO]] = {4: [], 6: []}
        for ip_range in ranges:
            try:
                network = self.parse_cidr(ip_range.cidr)
            except InvalidCidrError:
                logger.warning("ip_range_skipped", range_id=ip_range.id, cidr=ip_range.cidr)
                continue
            by_family[network.version].append(ip_range)

        wanted = {IpAddrKind.IPV4: [4], IpAddrKind.IPV6: [6], None: [4, 6]}[kind]
        picked: dict[int, AvailableIp | None] = {4: None, 6: None}
        for version in wanted:
            candidates = by_family[version]
            self._rng.shuffle(candidates)
            for ip_range in candidates:
                try:
                    picked[version] = await self.pick_ip_from_range(ip_range)
                    break
                except PlacementError as e:
                    logger.warning(
                        "ip_range_pick_failed",
                        range_id=ip_range.id,
                        cidr=ip_range.cidr,
                        region_id=region_id,
                        error=str(e),
                    )

        if picked[4] is None and picked[6] is None:
            raise NoAddressAvailableError(
                f"No IPs available in region {region_id}", region_id=region_id
            )
        return AvailableIps(ip4=picked[4], ip6=picked[6])

    async def pick_ip_from_range_id(self, range_id: int) -> AvailableIp:
        ip_range = await self.store.get_ip_range(range_id)
        return await self.pick_ip_from_range(ip_range)

    async def pick_ip_from_range(self, ip_range: IpRangeDTO) -> AvailableIp:
        """Pick a free address from a single range.

        The address is reported with the wider of the range and gateway
        prefixes, so it can route through a gateway whose network is broader
        than the allocation block. SLAAC ranges return the whole CIDR; the
        per-VM address is derived from the MAC when the assignment is made.

        Raises:
            InvalidCidrError: The range CIDR is malformed.
            InvalidGatewayError: The gateway is malformed or of another family.
            UnsupportedOperationError: SLAAC requested on an IPv4 range.
            NoAddressAvailableError: Every address is taken.
        """
        network = self.parse_cidr(ip_range.cidr)
        gateway = self.parse_gateway(ip_range.gateway)
        if gateway.version != network.version:
            raise InvalidGatewayError(ip_range.gateway, "Gateway family does not match range")
        prefix = min(network.prefixlen, gateway.network.prefixlen)

        if ip_range.allocation_mode == IpRangeAllocationMode.SLAAC_EUI64:
            if network.version != 6:
                raise UnsupportedOperationError(
                    f"Cannot use EUI-64 allocation on IPv4 range {ip_range.cidr}"
                )
            return self._available(ip_range, ip_interface(network.with_prefixlen), gateway)

        reserved = await self._reserved_addresses(ip_range, network, gateway)
        if ip_range.allocation_mode == IpRangeAllocationMode.RANDOM:
            address = self._pick_random(network, reserved)
        else:
            address = self._pick_sequential(network, reserved)

        if address is None:
            raise NoAddressAvailableError(
                f"No IPs available in range {ip_range.id} ({ip_range.cidr})",
                range_id=ip_range.id,
                region_id=ip_range.region_id,
            )
        return self._available(ip_range, ip_interface(f"{address}/{prefix}"), gateway)

    async def list_free_ips_in_range(self, ip_range: IpRangeDTO) -> list[IPv4Address]:
        """Enumerate every unreserved, unassigned address of an IPv4 range.

        Raises:
            UnsupportedOperationError: The range is IPv6.
        """
        network = self.parse_cidr(ip_range.cidr)
        if network.version != 4:
            raise UnsupportedOperationError(
                f"Listing free addresses is unsupported for this family: {ip_range.cidr}"
            )
        gateway = self.parse_gateway(ip_range.gateway)
        reserved = await self._reserved_addresses(ip_range, network, gateway)
        return [a for a in network if a not in reserved]

    def validate_ip_assignment(self, assignment: VmIpAssignmentDTO, ip_range: IpRangeDTO) -> None:
        """Check that an assignment's address belongs to its range."""
        network = self.parse_cidr(ip_range.cidr)
        try:
            address = ip_interface(assignment.ip.strip()).ip
        except ValueError:
            raise AddressOutOfRangeError(assignment.ip, ip_range.cidr) from None
        if address not in network:
            raise AddressOutOfRangeError(assignment.ip, ip_range.cidr)

    @staticmethod
    def count_available_ips(ip_range: IpRangeDTO, assignment_count: int) -> int | None:
        """Free address count for IPv4 ranges, ``None`` for IPv6."""
        network = NetworkProvisioner.parse_cidr(ip_range.cidr)
        if network.version != 4:
            return None
        reserved = 1 if ip_range.use_full_range else 3
        return max(0, network.num_addresses - reserved - assignment_count)

    @staticmethod
    def calculate_eui64(mac: bytes, prefix: IpNetwork | IpInterface) -> IPv6Address:
        """Derive a SLAAC address from a MAC using modified EUI-64.

        The universal/local bit of the first octet is flipped and FF:FE is
        inserted in the middle; the result replaces the low 64 bits of the
        prefix's network address.
        """
        if len(mac) != 6:
            raise ValueError(f"MAC must be 6 bytes, got {len(mac)}")
        network = prefix.network if isinstance(prefix, IpInterface) else prefix
        if network.version != 6:
            raise UnsupportedOperationError("Cannot create EUI-64 from an IPv4 prefix")

        eui64 = bytes([mac[0] ^ 0x02, mac[1], mac[2], 0xFF, 0xFE, mac[3], mac[4], mac[5]])
        return IPv6Address(network.network_address.packed[:8] + eui64)

    @staticmethod
    def parse_mac(mac: str) -> bytes:
        """Parse ``aa:bb:cc:dd:ee:ff`` (or bare hex) into 6 bytes."""
        raw = bytes.fromhex(mac.strip().replace(":", ""))
        if len(raw) != 6:
            raise ValueError(f"Invalid MAC address: {mac!r}")
        return raw

    @staticmethod
    def parse_gateway(gateway: str) -> IpInterface:
        """Parse a gateway, promoting a bare address to /32 or /128."""
        try:
            return ip_interface(gateway.strip())
        except ValueError:
            raise InvalidGatewayError(gateway, "Invalid gateway") from None

    @staticmethod
    def parse_cidr(cidr: str) -> IpNetwork:
        """Parse a range CIDR; host bits are allowed and masked off."""
        try:
            return ip_network(cidr.strip(), strict=False)
        except ValueError:
            raise InvalidCidrError(cidr, "Invalid CIDR") from None

    @staticmethod
    def ipv6_to_ptr(address: IPv6Address | str) -> str:
        """Full nibble-reversed ``ip6.arpa`` name of an IPv6 address."""
        address = ip_address(address) if isinstance(address, str) else address
        if address.version != 6:
            raise UnsupportedOperationError(f"{address} is not an IPv6 address")
        return address.reverse_pointer

    async def _reserved_addresses(
        self, ip_range: IpRangeDTO, network: IpNetwork, gateway: IpInterface
    ) -> set[IpAddress]:
        reserved: set[IpAddress] = {gateway.ip}
        if network.version == 4 and not ip_range.use_full_range:
            reserved.add(network.network_address)
            reserved.add(network.broadcast_address)

        for assignment in await self.store.list_vm_ip_assignments_in_range(ip_range.id):
            if assignment.deleted:
                continue
            try:
                reserved.add(ip_interface(assignment.ip.strip()).ip)
            except ValueError:
                logger.warning(
                    "ip_assignment_unparsable",
                    assignment_id=assignment.id,
                    range_id=ip_range.id,
                    ip=assignment.ip,
                )
        return reserved

    def _pick_random(self, network: IpNetwork, reserved: set[IpAddress]) -> IpAddress | None:
        for _ in range(self.max_random_attempts):
            address = network[self._rng.randrange(network.num_addresses)]
            if address not in reserved:
                return address
        logger.debug(
            "random_pick_fallback",
            network=str(network),
            attempts=self.max_random_attempts,
        )
        return self._pick_sequential(network, reserved)

    @staticmethod
    def _pick_sequential(network: IpNetwork, reserved: set[IpAddress]) -> IpAddress | None:
        for address in network:
            if address not in reserved:
                return address
        return None

    @staticmethod
    def _available(ip_range: IpRangeDTO, ip: IpInterface, gateway: IpInterface) -> AvailableIp:
        return AvailableIp(
            ip=ip,
            gateway=gateway,
            range_id=ip_range.id,
            region_id=ip_range.region_id,
            mode=ip_range.allocation_mode,
        )
