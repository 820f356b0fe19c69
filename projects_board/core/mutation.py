"""
Per-call state machine for optimistic mutations.

Every user mutation goes through the same protocol::

    Idle -> Validating -> OptimisticallyApplied -> Persisting -> Committed -> Idle
                  |                                         \\-> RolledBack -> Idle
                  \\-> Idle (validation failed, nothing touched)

Validation runs against cached state before any write. The optimistic apply
publishes the new state to the cache synchronously. Persistence runs the
store writes; on any failure the cache is reloaded from the store and the
original error is re-raised.
"""

from __future__ import annotations

from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

import structlog
from pydantic import ValidationError

from ..errors import BoardValidationError, InvalidTransition

logger = structlog.get_logger()

P = TypeVar("P")
R = TypeVar("R")


class MutationState(str, Enum):
    """Lifecycle states of a single mutation call."""

    IDLE = "idle"
    VALIDATING = "validating"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


ALLOWED_TRANSITIONS = {
    MutationState.IDLE: {MutationState.VALIDATING},
    MutationState.VALIDATING: {MutationState.OPTIMISTICALLY_APPLIED, MutationState.IDLE},
    MutationState.OPTIMISTICALLY_APPLIED: {MutationState.PERSISTING},
    MutationState.PERSISTING: {MutationState.COMMITTED, MutationState.ROLLED_BACK},
    MutationState.COMMITTED: {MutationState.IDLE},
    MutationState.ROLLED_BACK: {MutationState.IDLE},
}


class Mutation(Generic[P, R]):
    """One in-flight mutation.

    Args:
        name: Operation name, used in logs.
        reload: Coroutine function that re-syncs the cache from the store.
        validate: Checks cached state and returns a plan, or raises
            BoardValidationError.
        apply: Publishes the plan's optimistic state to the cache.
        persist: Issues the store writes for the plan.
        commit: Optional hook that patches server-assigned fields into the
            cache after a successful persist.
    """

    def __init__(
        self,
        name: str,
        reload: Callable[[], Awaitable[None]],
        validate: Callable[[], P],
        apply: Callable[[P], None],
        persist: Callable[[P], Awaitable[R]],
        commit: Optional[Callable[[P, R], None]] = None,
        **context,
    ):
        self.name = name
        self._reload = reload
        self._validate = validate
        self._apply = apply
        self._persist = persist
        self._commit = commit
        self.state = MutationState.IDLE
        self.history: List[MutationState] = [MutationState.IDLE]
        self.error: Optional[Exception] = None
        self.logger = logger.bind(mutation=name, **context)

    def transition(self, target: MutationState) -> None:
        allowed = ALLOWED_TRANSITIONS[self.state]
        if target not in allowed:
            raise InvalidTransition(
                self.state.value, target.value, sorted(s.value for s in allowed)
            )
        self.state = target
        self.history.append(target)

    def _checked_plan(self) -> P:
        """Run validation, reporting schema rejections as validation errors."""
        try:
            return self._validate()
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise BoardValidationError(error["msg"], field=field) from e

    async def run(self) -> R:
        """Drive the mutation to Idle, returning the persist result."""
        self.transition(MutationState.VALIDATING)
        try:
            plan = self._checked_plan()
        except BoardValidationError as e:
            self.error = e
            self.transition(MutationState.IDLE)
            self.logger.info("mutation_rejected", reason=e.message)
            raise

        self._apply(plan)
        self.transition(MutationState.OPTIMISTICALLY_APPLIED)

        self.transition(MutationState.PERSISTING)
        try:
            result = await self._persist(plan)
        except Exception as e:
            self.error = e
            self.transition(MutationState.ROLLED_BACK)
            self.logger.warning(
                "mutation_rolled_back", error=str(e), error_type=type(e).__name__
            )
            try:
                await self._reload()
            except Exception:
                self.logger.exception("mutation_reload_failed")
            self.transition(MutationState.IDLE)
            raise e

        if self._commit is not None:
            self._commit(plan, result)
        self.transition(MutationState.COMMITTED)
        self.logger.debug("mutation_committed")
        self.transition(MutationState.IDLE)
        return result
