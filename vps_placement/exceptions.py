"""Placement and address-allocation errors.

NotFound, NoCapacity and UnsupportedOperation are deterministic for the
current store state and are surfaced unchanged to the ordering workflow.
InvalidCidr / InvalidGateway mean the stored configuration is broken.
"""


class PlacementError(Exception):
    """Base class for all placement engine errors."""

    pass


class NotFoundError(PlacementError):
    """Raised when a region, host, range or template does not exist."""

    def __init__(self, kind: str, key: object):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class NoCapacityError(PlacementError):
    """Raised when no host or address can satisfy a request."""

    pass


class NoAddressAvailableError(NoCapacityError):
    """Raised when a range (or a whole region) has no free address."""

    def __init__(self, message: str, range_id: int | None = None, region_id: int | None = None):
        self.range_id = range_id
        self.region_id = region_id
        super().__init__(message)


class UnsupportedOperationError(PlacementError):
    """Raised for operations that make no sense for an address family."""

    pass


class InvalidConfigurationError(PlacementError):
    """Raised when stored network configuration cannot be parsed."""

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class InvalidCidrError(InvalidConfigurationError):
    """Range CIDR is malformed."""

    pass


class InvalidGatewayError(InvalidConfigurationError):
    """Range gateway is malformed."""

    pass


class AddressConflictError(PlacementError):
    """Raised by a store when an address is already assigned in its range."""

    def __init__(self, range_id: int, ip: str):
        self.range_id = range_id
        self.ip = ip
        super().__init__(f"IP {ip} is already assigned in range {range_id}")


class AddressOutOfRangeError(PlacementError):
    """Raised when an address to be assigned lies outside its range CIDR."""

    def __init__(self, ip: str, cidr: str):
        self.ip = ip
        self.cidr = cidr
        super().__init__(f"IP {ip} is not within range {cidr}")
