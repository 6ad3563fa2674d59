"""Error taxonomy for the owner-guarded store."""


class OwnerStoreError(Exception):
    """Base class for store errors."""


class AlreadyInitialized(OwnerStoreError):
    """Raised when the owner has already been bound."""

    def __init__(self) -> None:
        super().__init__("store is already initialized")


class Unauthorized(OwnerStoreError):
    """Raised when the caller is not the bound owner."""

    def __init__(self) -> None:
        # Same message whether or not a secret exists.
        super().__init__("access denied")


class NotSet(OwnerStoreError):
    """Raised on an owner read before any successful write."""

    def __init__(self) -> None:
        super().__init__("secret not set")


class CellStorageError(OwnerStoreError):
    """Raised when persisted cell data cannot be read or written."""


class NotifierError(OwnerStoreError):
    """Raised by notifier sinks; never escapes ChangeNotifier.emit."""
