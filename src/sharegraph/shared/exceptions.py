"""
Common exceptions for ShareGraph.

Every error raised to callers derives from ``ShareGraphError`` and carries a
stable ``code`` so that an outer surface can map it without string matching.
"""


class ShareGraphError(Exception):
    """Base exception for all ShareGraph errors."""

    code = "share_graph_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)


class NotFoundError(ShareGraphError):
    """Share or entity not found."""

    code = "share_not_found"


class ParamsError(ShareGraphError):
    """Invalid or unsupported request parameters."""

    code = "params_error"


class QuotaExceededError(ShareGraphError):
    """Storage quota exceeded."""

    code = "storage_quota_exceeded"


class DuplicationNotAllowedError(ShareGraphError):
    """Duplication is not allowed for this share."""

    code = "duplication_not_allowed"


class RateLimitError(ShareGraphError):
    """Too many share operations for this entity, please retry later."""

    code = "share_rate_limited"


class ConfigurationError(ShareGraphError):
    """Raised when there are configuration issues."""

    code = "configuration_error"


class StorageError(ShareGraphError):
    """Raised when object storage operations fail."""

    code = "storage_error"


class RepositoryError(ShareGraphError):
    """Raised when record store operations fail."""

    code = "repository_error"
