class SchedulerError(Exception):
    """Base exception for scheduler controller errors."""
    pass

class ConfigurationError(SchedulerError):
    pass

class StoreError(SchedulerError):
    """Raised by store implementations for storage-level failures."""
    pass

class DuplicateKeyError(StoreError):
    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} already exists")

class RecordNotFoundError(StoreError):
    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")
