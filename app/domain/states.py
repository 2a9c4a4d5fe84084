from enum import StrEnum, auto

class JobStatus(StrEnum):
    DEFINED = auto()    # Stored but not yet runnable
    ACTIVE = auto()     # Runnable, part of the synchronized set
    PAUSED = auto()     # Temporarily withdrawn from agents
    COMPLETED = auto()  # Finished for good
    FAILED = auto()     # Gave up

class IterationStatus(StrEnum):
    RUNNING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    CANCELLED = auto()
    SKIPPED = auto()

# Only these statuses take part in status exchange
SYNC_STATUSES = frozenset({JobStatus.ACTIVE})
