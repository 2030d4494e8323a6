class RecordStoreError(Exception):
    """Exception raised when the record store cannot complete an operation."""
    pass


class RecordNotFoundError(RecordStoreError):
    """Exception raised when a session record id is not present in the store."""
    pass


class InvalidRecordError(ValueError):
    """Exception raised when a session record breaks the phase ordering rules."""
    pass
