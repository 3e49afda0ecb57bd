"""
Error taxonomy shared by the ingestion and query paths.

Each error carries a short, caller-safe description. The HTTP layer maps
them onto status codes in `src.main`.
"""


class AnalyticsError(Exception):
    """Base class for all service errors."""

    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AnalyticsError):
    """Bad input shape. Detected before any write."""

    status_code = 400
    title = "Validation failed"


class DependencyError(AnalyticsError):
    """A dataset, query or cache collaborator failed."""

    status_code = 500
    title = "Dependency failure"


class IngestionError(DependencyError):
    """Writing a shaped record to its dataset failed."""

    title = "Failed to track event"


class NotFoundError(AnalyticsError):
    status_code = 404
    title = "Not Found"
