"""
Error taxonomy for projects-board.

Validation errors are raised before any cache or store mutation. Source and
store errors keep their specific type when they propagate out of a rollback,
so callers can tell a duplicate title apart from an outage.
"""

from typing import Any, Dict, List, Optional


class BoardError(Exception):
    """Base class for every error raised by the board engine."""

    code = "BOARD_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class BoardValidationError(BoardError):
    """Bad user input to a mutation (empty title, duplicate, illegal move)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


# =============================================================================
# GitHub source
# =============================================================================


class SourceError(BoardError):
    """Base class for GitHub source failures."""

    code = "SOURCE_ERROR"


class AuthExpired(SourceError):
    """The remote service rejected the credential (HTTP 401)."""

    code = "GITHUB_AUTH_EXPIRED"

    def __init__(self, message: str = "GitHub credential was rejected"):
        super().__init__(message)


class TransportError(SourceError):
    """Any other non-success response or network failure."""

    code = "GITHUB_TRANSPORT_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


# =============================================================================
# Persistent store
# =============================================================================


class StoreError(BoardError):
    """Base class for persistent store failures."""

    code = "STORE_ERROR"


class NotFound(StoreError):
    """An operation addressed a record that does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"entity": self.entity, "key": self.key})
        return data


class Conflict(StoreError):
    """A uniqueness constraint was violated."""

    code = "CONFLICT"

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["entity"] = self.entity
        return data


class Unavailable(StoreError):
    """The store could not be reached."""

    code = "STORE_UNAVAILABLE"


# =============================================================================
# Engine
# =============================================================================


class MissingSystemColumn(BoardError):
    """Reconciliation ran before the system columns were bootstrapped."""

    code = "MISSING_SYSTEM_COLUMN"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"System column missing: {kind}")


class ReconcileError(BoardError):
    """One or more reconciliation effects failed.

    The result still carries the re-read project set, so the cache can be
    published before the error reaches the caller.
    """

    code = "RECONCILE_FAILED"

    def __init__(self, result: Any):
        self.result = result
        failures = result.failures
        super().__init__(
            f"{len(failures)} reconciliation effect(s) failed: "
            + ", ".join(f"{f.kind}:{f.project_id}" for f in failures)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failures"] = [f.to_dict() for f in self.result.failures]
        return data


class ReloadInProgress(BoardError):
    """A GitHub reload was requested while another one is still running."""

    code = "RELOAD_IN_PROGRESS"

    def __init__(self) -> None:
        super().__init__("A GitHub reload is already running")


class InvalidTransition(BoardError):
    """A mutation was driven through an illegal state transition."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, allowed: List[str]):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition mutation from '{current}' to '{target}'. "
            f"Allowed: {allowed}"
        )
