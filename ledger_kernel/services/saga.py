"""
Saga -- resumable multi-row write sequences over a single-row store.

Responsibility:
    The store commits one row per call and has no multi-row transaction.
    A Saga runs an ordered list of named single-write steps, records which
    ones completed (and what they wrote), and on failure raises a typed
    PartialFailure that carries the saga itself.  Calling ``execute()``
    again runs only the steps that have not completed and then returns the
    operation's normal result.
Architecture position:
    Kernel > Services.  Used by LedgerRecorder and every ledger module
    service that writes more than one row.
Invariants enforced:
    - A completed step is never run twice.
    - Steps run in declaration order.
    - A step that is itself a saga (it raised PartialFailure) is resumed
      through its own saga, not restarted.
Failure modes:
    - PersistenceFailure re-raised unchanged when nothing at all has been
      written yet (the caller can simply retry the whole operation).
    - Otherwise the saga's ``partial_error`` type (PartialPostingFailure by
      default) chained from the underlying error.
Audit relevance:
    ``saga_partial_failure`` is logged at ERROR with every written id and
    the pending step names, so a half-written state can always be located.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import (
    PartialFailure,
    PartialPostingFailure,
    PersistenceFailure,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.saga")


@dataclass(frozen=True)
class SagaStep:
    """One named single-write step.  ``action`` returns what it wrote."""

    name: str
    action: Callable[[], Any]


class Saga:
    """
    An ordered, resumable sequence of single-row writes.

    Args:
        operation: Short operation name for logs and errors
            (``post_movement``, ``transfer``, ...).
        reference: Human-facing reference of the operation (transaction
            number, count number, receipt number).
        partial_error: Factory for the PartialFailure raised once at least
            one row has been written.
        finalize: Builds the operation's result from the step results.
    """

    def __init__(
        self,
        operation: str,
        reference: str,
        *,
        partial_error: Callable[["Saga", Exception], PartialFailure] = PartialPostingFailure,
        finalize: Callable[[dict[str, Any]], Any] | None = None,
    ):
        self.operation = operation
        self.reference = reference
        self._partial_error = partial_error
        self._finalize = finalize
        self._steps: list[SagaStep] = []
        self._results: dict[str, Any] = {}
        self._nested: dict[str, "Saga"] = {}
        self._finished = False
        self._abandoned = False
        self._outcome: Any = None

    def add_step(self, name: str, action: Callable[[], Any]) -> "Saga":
        if any(step.name == name for step in self._steps):
            raise ValueError(f"Duplicate saga step name: {name}")
        if self._finished:
            raise ValueError(f"Saga {self.operation} {self.reference} already finished")
        self._steps.append(SagaStep(name, action))
        return self

    def add_saga(self, name: str, saga: "Saga") -> "Saga":
        """Add a step that runs a whole sub-saga; its written ids count as ours."""
        self.add_step(name, saga.execute)
        self._nested[name] = saga
        return self

    def abandon(self) -> None:
        """Mark the saga as given up; it will refuse to execute again."""
        self._abandoned = True
        logger.warning(
            "saga_abandoned",
            extra={
                "operation": self.operation,
                "reference": self.reference,
                "pending_steps": self.pending_step_names,
            },
        )

    # -- state --------------------------------------------------------------

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(step.name for step in self._steps)

    @property
    def completed_step_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._steps if s.name in self._results)

    @property
    def pending_step_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._steps if s.name not in self._results)

    @property
    def is_complete(self) -> bool:
        return self._finished

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def written_record_ids(self) -> tuple[UUID, ...]:
        """Ids of every row written so far, including by nested sagas."""
        ids: list[UUID] = []
        for step in self._steps:
            nested = self._nested.get(step.name)
            if nested is not None:
                ids.extend(nested.written_record_ids)
            elif step.name in self._results:
                written = _written_id(self._results[step.name])
                if written is not None:
                    ids.append(written)
        return tuple(ids)

    def result(self, name: str) -> Any | None:
        return self._results.get(name)

    def nested(self, name: str) -> "Saga | None":
        """The sub-saga behind step ``name``, if that step is one."""
        return self._nested.get(name)

    # -- execution ----------------------------------------------------------

    def execute(self) -> Any:
        """Run every pending step and return the operation's result."""
        if self._abandoned:
            raise ValueError(f"Saga {self.operation} {self.reference} was abandoned")
        if self._finished:
            return self._outcome

        resuming = bool(self.written_record_ids)
        if resuming:
            logger.info(
                "saga_resumed",
                extra={
                    "operation": self.operation,
                    "reference": self.reference,
                    "pending_steps": self.pending_step_names,
                },
            )

        for step in self._steps:
            if step.name in self._results:
                continue
            nested = self._nested.get(step.name)
            try:
                if nested is not None:
                    result = nested.execute()
                else:
                    result = step.action()
            except PartialFailure as exc:
                self._nested[step.name] = exc.saga
                self._fail(step, exc)
            except PersistenceFailure as exc:
                self._fail(step, exc)
            self._results[step.name] = result
            logger.debug(
                "saga_step_completed",
                extra={
                    "operation": self.operation,
                    "reference": self.reference,
                    "step": step.name,
                },
            )

        self._outcome = self._finalize(dict(self._results)) if self._finalize else dict(self._results)
        self._finished = True
        return self._outcome

    def _fail(self, step: SagaStep, exc: Exception) -> None:
        written = self.written_record_ids
        if not written and isinstance(exc, PersistenceFailure):
            raise exc

        logger.error(
            "saga_partial_failure",
            extra={
                "operation": self.operation,
                "reference": self.reference,
                "failed_step": step.name,
                "completed_steps": self.completed_step_names,
                "pending_steps": self.pending_step_names,
                "written_ids": written,
            },
        )
        raise self._partial_error(self, exc) from exc


def _written_id(result: Any) -> UUID | None:
    if isinstance(result, UUID):
        return result
    return getattr(result, "id", None)
