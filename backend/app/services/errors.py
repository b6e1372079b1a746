"""Package service exceptions — routers map these to HTTP status codes."""


class PackageError(Exception):
    """Base class for package lifecycle errors."""


class PackageNotFoundError(PackageError):
    pass


class DestinationNotFoundError(PackageNotFoundError):
    """None of the requested destinations exist."""


class PackageAccessDeniedError(PackageError):
    pass


class PackageLockedError(PackageError):
    """Raised on any modification of a booked package."""


class InvalidConfigurationError(PackageError):
    """Unknown cab, hotel, day or activity reference in an update."""
