"""
Error types for the channel catalog

Read paths degrade on QueryFailure, write paths propagate it.
FormatError and UnknownKeyError always reach the caller.
"""


class CatalogError(Exception):
    """Base class for catalog errors"""
    pass


class QueryFailure(CatalogError):
    """Raised when the catalog store is unreachable or a query fails"""
    pass


class FormatError(CatalogError, ValueError):
    """Raised when a flattened catalog value cannot be decoded"""
    pass


class UnknownKeyError(CatalogError, LookupError):
    """Raised when a display number or rating descriptor cannot be resolved"""
    pass


class AssetFetchFailure(CatalogError):
    """Raised inside the logo fetcher when a single asset copy fails"""

    def __init__(self, row_id: int, url: str, reason: str):
        super().__init__(f"Failed to copy logo {url} to channel {row_id}: {reason}")
        self.row_id = row_id
        self.url = url
        self.reason = reason
