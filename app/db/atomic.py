"""
Multi-record atomic units.

Sequences that touch more than one row (deactivate-all-then-activate-one,
vacate-then-assign, per-student promotion) go through this module instead of
committing ad hoc at each call site.

Two modes, selected by settings.transaction_mode (TRANSACTION_MODE):

- atomic: every step runs inside one transaction; a failure anywhere rolls
  the whole unit back.
- sequential: fallback for deployments without multi-statement transactions.
  Each step is committed on its own, in order. The partial unique indexes
  are then the last line of defence; a constraint firing in a later step
  surfaces as ConflictError and the caller may retry.

In both modes an IntegrityError is translated to ConflictError so callers see
one error taxonomy regardless of the path taken.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import TransactionMode
from app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

Step = Callable[[], Awaitable[Any]]


def resolve_mode(mode: Optional[Union[TransactionMode, str]] = None) -> TransactionMode:
    """Explicit mode wins; otherwise the configured default."""
    return TransactionMode(mode or settings.transaction_mode)


async def run_atomic(
    db: AsyncSession,
    steps: Sequence[Step],
    conflict_message: str,
    mode: Optional[Union[TransactionMode, str]] = None,
) -> List[Any]:
    """Run steps in order as one unit and commit. Returns each step's result."""
    mode = resolve_mode(mode)
    results: List[Any] = []

    if mode is TransactionMode.ATOMIC:
        try:
            for step in steps:
                results.append(await step())
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(conflict_message)
        except Exception:
            await db.rollback()
            raise
        return results

    logger.warning("Transactions disabled; running %d steps sequentially", len(steps))
    for index, step in enumerate(steps):
        try:
            results.append(await step())
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Unique constraint fired at step %d of sequential unit", index + 1)
            raise ConflictError(conflict_message)
        except Exception:
            await db.rollback()
            raise
    return results


async def commit_or_conflict(db: AsyncSession, conflict_message: str) -> None:
    """Commit a single-record write; a store-level duplicate becomes ConflictError."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(conflict_message)


@asynccontextmanager
async def savepoint(
    db: AsyncSession,
    conflict_message: str,
    mode: Optional[Union[TransactionMode, str]] = None,
) -> AsyncIterator[None]:
    """
    Per-record unit inside a larger batch.

    atomic: a SAVEPOINT; on error only this record's writes are undone and the
    enclosing transaction stays usable. The caller commits the batch.
    sequential: the record is committed on success; on error the session is
    rolled back, so callers must not rely on ORM state loaded before the block.
    """
    mode = resolve_mode(mode)
    if mode is TransactionMode.ATOMIC:
        try:
            async with db.begin_nested():
                yield
        except IntegrityError:
            raise ConflictError(conflict_message)
        return

    try:
        yield
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(conflict_message)
    except Exception:
        await db.rollback()
        raise
