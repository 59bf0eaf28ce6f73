"""Custom exceptions for HRV snapshot."""


class HRVSnapshotError(Exception):
    """Base exception for all HRV snapshot errors."""

    pass


class ConfigurationError(HRVSnapshotError):
    """Raised when there is a configuration error."""

    pass


class SourceError(HRVSnapshotError):
    """Raised when a metric source query fails."""

    pass


class ParsingError(HRVSnapshotError):
    """Raised when a health export cannot be parsed."""

    pass


class StorageError(HRVSnapshotError):
    """Raised when the durable store cannot be read or written."""

    pass
