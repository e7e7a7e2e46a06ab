class AnalyticsError(Exception):
    """Base class for errors surfaced by the analytics core."""


class StorageError(AnalyticsError):
    """The database is unreachable or returned something unusable."""


class InvalidInputError(AnalyticsError):
    pass


class UnauthorizedError(AnalyticsError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
