# nftreg/errors.py
"""
Error kinds raised by the registry.

NotFoundError, AlreadyExistsError and UnderflowError are ordinary outcomes
that callers are expected to handle. DataCorruptionError and
StorageFailureError are fatal for the current state transition.
"""


class RegistryError(Exception):
    """Base registry error."""
    pass


class NotFoundError(RegistryError):
    """Load/update/remove targeted an absent key."""
    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"{namespace}: not found: {key}")


class AlreadyExistsError(RegistryError):
    """Insert targeted an occupied key."""
    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"{namespace}: already exists: {key}")


class UnderflowError(RegistryError):
    """Counter decremented at zero."""
    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"{namespace}: cannot decrement below zero")


class DataCorruptionError(RegistryError):
    """Stored bytes failed to deserialize into the expected shape."""
    def __init__(self, namespace: str, key: str, reason: str):
        self.namespace = namespace
        self.key = key
        self.reason = reason
        super().__init__(f"{namespace}: corrupt value at {key}: {reason}")


class StorageFailureError(RegistryError):
    """The storage backend reported an I/O-level fault."""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage {operation} failed: {reason}")
