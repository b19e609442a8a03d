"""Exception hierarchy shared by the clients, the CLI and the tool server."""

from __future__ import annotations


class SitePulseError(Exception):
    """Base class for every error raised by sitepulse."""


class CredentialUnavailable(SitePulseError):
    """No credential in the environment and the secret manager lookup failed."""

    def __init__(self, env_var: str, cause: BaseException | str | None = None) -> None:
        self.env_var = env_var
        self.cause = cause
        message = (
            f"Could not get {env_var}. Set the {env_var} environment variable "
            f"or configure the 1Password CLI."
        )
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)


class UnsupportedRange(SitePulseError, ValueError):
    """A time range that cannot be normalized."""


class UnsupportedUnit(UnsupportedRange):
    """A rolling window unit outside days/weeks/months."""


class UnknownMetric(SitePulseError, ValueError):
    """A metric alias with no provider mapping."""


class UnknownDimension(SitePulseError, ValueError):
    """A dimension or breakdown property the provider does not support."""


class UnsupportedFilter(SitePulseError, ValueError):
    """A filter that cannot be expressed for the target endpoint."""


class ApiError(SitePulseError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, status: int, body: str, endpoint: str = "") -> None:
        self.status = status
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"API error ({status}) on {endpoint or 'request'}: {body}")


class TransportError(SitePulseError):
    """Network, DNS or TLS failure before a response was received."""

    def __init__(self, cause: BaseException, endpoint: str = "") -> None:
        self.cause = cause
        self.endpoint = endpoint
        super().__init__(f"Could not reach {endpoint or 'API'}: {cause}")


class DecodeError(SitePulseError):
    """Response body was not JSON or did not match the expected shape."""

    def __init__(self, cause: BaseException, endpoint: str = "") -> None:
        self.cause = cause
        self.endpoint = endpoint
        super().__init__(f"Could not decode response from {endpoint or 'API'}: {cause}")


class PageLimitExceeded(SitePulseError):
    """A paginated result reports more pages than the configured cap."""

    def __init__(self, total_pages: int, max_pages: int) -> None:
        self.total_pages = total_pages
        self.max_pages = max_pages
        super().__init__(
            f"Result spans {total_pages} pages, above the limit of {max_pages}. "
            f"Narrow the query or raise MAX_PAGES."
        )


class ProjectNotFound(SitePulseError):
    """No Vercel project matches the given ID or name."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Project not found with identifier: {identifier}")
