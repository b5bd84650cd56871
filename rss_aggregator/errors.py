"""
Exception hierarchy for RSS Aggregator.

Per-feed errors (transport and parse failures) are contained by the
orchestrator; configuration errors are fatal at startup.
"""


class AggregatorError(Exception):
    """Base class for all aggregator errors."""

    pass


class TransportError(AggregatorError):
    """
    Raised when a feed cannot be fetched.

    Covers network failures, timeouts and any status other than 200/304.

    Attributes
    ----------
    url : str
        URL of the feed that failed.
    status : int | None
        HTTP status code, if a response was received.
    """

    def __init__(self, url: str, message: str, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ParseError(AggregatorError):
    """Raised when fetched bytes are not a recognizable RSS/Atom document."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class ConfigError(AggregatorError):
    """Raised when the configuration is missing or malformed."""

    pass
