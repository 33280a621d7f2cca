class DexDataError(Exception):
    """Base class for all dexdata errors."""


class ExternalServiceError(DexDataError):
    """Vendor API unreachable, returned a non-2xx status or an error payload."""


class RateLimitError(ExternalServiceError):
    """Vendor rejected the request because of rate limiting (HTTP 429 or vendor code)."""


class ConfigurationError(DexDataError):
    """Required credentials or client configuration are missing or invalid."""


class NotFoundError(DexDataError):
    """Vendor answered, but has no record for the requested symbol or address."""
