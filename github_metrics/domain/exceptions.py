class MetricsServiceException(Exception):
    """Base exception for all metrics service errors."""
    pass

class InvalidRequestError(MetricsServiceException):
    """Raised when a username or paging parameter is malformed."""
    pass

class UpstreamNotFoundError(MetricsServiceException):
    """Raised when GitHub answers with something other than a repository list."""
    def __init__(self, message: str = "User not found or API error"):
        super().__init__(message)

class UpstreamUnavailableError(MetricsServiceException):
    """Raised when GitHub cannot be reached or the request times out."""
    pass

class MetricsNotFoundError(MetricsServiceException):
    """Raised when no metrics have been persisted for a username."""
    def __init__(self, username: str, message: str = "Metrics not found"):
        self.username = username
        super().__init__(message)

class BadgeFetchError(MetricsServiceException):
    """Raised when one of the badge fragments cannot be fetched."""
    pass

class StorageError(MetricsServiceException):
    """Raised when a database operation fails."""
    pass

class CacheError(MetricsServiceException):
    """Raised when a cache read or write fails."""
    pass
