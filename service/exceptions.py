"""
Exceptions raised by the scheduling core.

Each carries an HTTP status code so the API layer can translate it without
knowing about individual error types.
"""
from typing import List, Optional


class SchedulerError(Exception):
    """Base class for all scheduler exceptions."""

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class CatalogError(SchedulerError):
    """Raised when the catalog is unsatisfiable by construction."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        summary = self.problems[0] if len(self.problems) == 1 else f"{len(self.problems)} catalog problems found"
        super().__init__(summary, status_code=422, details={"problems": self.problems})


class ConflictError(SchedulerError):
    """Raised when a placement request cannot be satisfied by the current schedule."""

    def __init__(self, reason: str, blocking_entity: Optional[str] = None, slot=None, kind: Optional[str] = None):
        self.reason = reason
        self.blocking_entity = blocking_entity
        self.slot = slot
        self.kind = kind
        details = {"reason": reason, "blocking_entity": blocking_entity, "kind": kind}
        if slot is not None:
            details["slot"] = {"day": slot.day.value, "period": slot.period}
        super().__init__(reason, status_code=409, details=details)


class SessionNotFoundError(SchedulerError):
    """Raised when a session id is unknown to the store."""

    def __init__(self, session_id: str):
        super().__init__(f"Scheduling session {session_id} not found", status_code=404)


class UnknownEntityError(SchedulerError):
    """Raised when a request names a catalog entity or assignment that does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id {entity_id} not found", status_code=404)
