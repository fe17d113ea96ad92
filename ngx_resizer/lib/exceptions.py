"""Error taxonomy for header sniffing, dimension discovery and URL handling.

Every error here is recoverable from the caller's point of view: a failing
image is left unresized, never aborting the surrounding rewrite.
"""


class ResizerError(Exception):
    """Base class for all resizer errors."""


class MalformedImageError(ResizerError):
    """Raised when data or a URL cannot be interpreted as an image reference.

    Terminal for the given input; retrying with the same data cannot help.
    """


class IncompleteHeaderError(ResizerError):
    """Raised when a JPEG header ends before the start-of-frame payload.

    Signals that a larger byte range should be fetched.
    """

    def __init__(self, received: int) -> None:
        super().__init__(f"JPEG header truncated after {received} bytes")
        self.received = received


class DimensionsUnavailableError(ResizerError):
    """Raised when remote dimensions could not be determined."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not determine dimensions of {url}: {reason}")
        self.url = url
        self.reason = reason
