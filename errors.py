class InvalidInput(ValueError):
    """Raised when caller supplied values fall outside a formula or request domain."""


class NotFound(LookupError):
    """Raised when a query has no matching records."""


class StorageError(RuntimeError):
    """Raised when a repository call fails."""
