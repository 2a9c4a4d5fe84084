import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

@dataclass
class SyncChanges:
    added: List[Dict[str, Any]] = field(default_factory=list)
    updated: List[Dict[str, Any]] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def __bool__(self):
        return bool(self.added or self.updated or self.removed)

class LocalJobState:
    """
    An agent's cached copy of the active jobs of one (group, type) bucket.

    The cache is only ever changed by applying status exchange responses, so
    the {code: modified} map it reports is exactly what the controller sent.
    """

    def __init__(self, group: str, type: str):
        self.group = group
        self.type = type
        self.jobs: Dict[str, Dict[str, Any]] = {}

    def state(self) -> Dict[str, str]:
        return {code: job["modified"] for code, job in self.jobs.items()}

    def apply(self, response: Dict[str, Any]) -> SyncChanges:
        changes = SyncChanges()

        for code, job in (response.get("added") or {}).items():
            self.jobs[code] = job
            changes.added.append(job)

        for code, job in (response.get("updated") or {}).items():
            self.jobs[code] = job
            changes.updated.append(job)

        for code in response.get("removed") or []:
            if self.jobs.pop(code, None) is not None:
                changes.removed.append(code)

        if changes:
            logger.debug(
                "Bucket %s/%s: +%d ~%d -%d",
                self.group, self.type, len(changes.added), len(changes.updated), len(changes.removed),
            )
        return changes

    def __len__(self):
        return len(self.jobs)
