"""
SequenceService -- monotonic sequence allocation via dedicated counter rows.

Responsibility:
    Provides strictly increasing sequence numbers per named key
    (``<SCOPE>-<TYPE>-<YYYYMMDD>`` for document numbers).  Each allocation
    is one short transaction on one counter row, so it is a single-row
    atomic write like every other store call.
Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by DocumentNumberService.
Invariants enforced:
    - Sequence monotonicity: the counter row is the sole source of truth
      for the next value.  Counting existing ledger rows to derive a number
      is never done.
    - Row lock (``SELECT ... FOR UPDATE``) serializes concurrent
      allocations on PostgreSQL.
Failure modes:
    - IntegrityError on concurrent first use of a key: retried once by
      re-reading the row another caller just created.
    - PersistenceFailure if the counter write fails.
Audit relevance:
    A value is consumed as soon as it is allocated.  A caller that fails
    before posting leaves a gap in the visible numbers; numbers are never
    reused.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from ledger_kernel.db.base import Base
from ledger_kernel.exceptions import PersistenceFailure
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for allocating sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value, committed before it is returned.
    Non-goals:
        - Values are not returned to the pool when the caller later fails.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (or creates it on first use), increments it
        and commits.

        Returns:
            The next sequence value (always > 0).
        """
        try:
            return self._allocate(sequence_name)
        except IntegrityError:
            # Another caller created the counter first; its row is now there
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            try:
                return self._allocate(sequence_name)
            except SQLAlchemyError as exc:
                raise PersistenceFailure(
                    SequenceCounter.__tablename__, "increment", sequence_name, str(exc)
                ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure(
                SequenceCounter.__tablename__, "increment", sequence_name, str(exc)
            ) from exc

    def _allocate(self, sequence_name: str) -> int:
        with self._session_factory() as session, session.begin():
            counter = session.execute(
                select(SequenceCounter)
                .where(SequenceCounter.name == sequence_name)
                .with_for_update()
            ).scalar_one_or_none()

            if counter is None:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                session.add(counter)
            else:
                counter.current_value += 1
            session.flush()
            value = counter.current_value

        assert value > 0, "sequence value must be strictly positive"
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """Get the current value of a sequence without incrementing."""
        with self._session_factory() as session:
            counter = session.execute(
                select(SequenceCounter).where(SequenceCounter.name == sequence_name)
            ).scalar_one_or_none()
            return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: Only for tests or data migration.
        """
        with self._session_factory() as session, session.begin():
            counter = session.execute(
                select(SequenceCounter)
                .where(SequenceCounter.name == sequence_name)
                .with_for_update()
            ).scalar_one_or_none()
            if counter is None:
                session.add(SequenceCounter(name=sequence_name, current_value=value))
            else:
                counter.current_value = value
