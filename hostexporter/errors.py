"""Failure types raised by text sources and readers."""


class SourceError(Exception):
    """Base class for a cycle-local failure of one data source."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class SourceUnavailable(SourceError):
    """The pseudo-file or utility could not be read or executed."""


class MalformedSource(SourceError):
    """Data was read but did not have the expected shape."""
