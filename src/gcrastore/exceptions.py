"""Counter store specific exceptions."""


class GCRAStoreError(Exception):
    """Base exception for counter store errors."""


class StoreConnectionError(GCRAStoreError):
    """Exception raised when a backend session cannot be obtained.

    Covers failures to take a connection from the pool and failures of the
    partition (database) selection issued right after it.
    """

    def __init__(self, message: str, store_id: str | None = None, db: int | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            store_id: Optional ID of the store that tried to connect
            db: Optional logical database index that was being selected
        """
        self.store_id = store_id
        self.db = db
        super().__init__(message)


class StoreAlreadyConfiguredError(GCRAStoreError):
    """Exception raised when reconfiguring a store that already has a live handle."""

    def __init__(self, store_id: str) -> None:
        """Initialize the exception.

        Args:
            store_id: ID of the already configured store
        """
        self.store_id = store_id
        super().__init__(
            f"Store '{store_id}' is already in use. "
            f"Call remove_store('{store_id}') before configuring it again."
        )


class ConfigValidationError(GCRAStoreError):
    """Exception raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        expected: str | None = None,
        received: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            field: Field name that failed validation
            expected: Expected value or type
            received: Received value or type
        """
        self.field = field
        self.expected = expected
        self.received = received

        full_message = message
        if field and expected and received:
            full_message = f"{message} (field='{field}', expected={expected}, received={received})"

        super().__init__(full_message)


class StoreNotFoundError(GCRAStoreError):
    """Exception raised when a store is not found."""

    def __init__(self, store_id: str) -> None:
        """Initialize the exception.

        Args:
            store_id: ID of the store that was not found
        """
        self.store_id = store_id
        super().__init__(
            f"Store '{store_id}' not found. Configure it first using configure_store()."
        )
