"""Exception types for the family tree engine."""


class TreeError(Exception):
    """Base class for all family tree engine errors."""


class ValidationError(TreeError, ValueError):
    """A rejected operation: missing field, missing anchor, unknown id, no permission."""


class CacheError(TreeError):
    """A cached layout blob could not be decoded."""


class StorageError(TreeError):
    """The key-value store backing the layout cache failed."""


class CapacityError(TreeError):
    """Too many nodes for full-canvas layout and collision resolution."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            f"Too many family members to display ({count} > {limit}); refine your view"
        )
        self.count = count
        self.limit = limit
