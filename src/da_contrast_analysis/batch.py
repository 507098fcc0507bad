"""Per-session batch execution with skip-and-warn error handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Sequence, TypeVar

from .errors import RECOVERABLE_ERRORS, InsufficientDataError
from .store import Session

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class BatchResult(Generic[R]):
    """Results keyed by session index, plus the reason each skipped session failed."""

    results: Dict[int, R] = field(default_factory=dict)
    skipped: Dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.results)


def run_per_session(
    sessions: Sequence[Session],
    fn: Callable[[Session], R],
    label: str = "analysis",
    require_any: bool = False,
) -> BatchResult[R]:
    """Apply ``fn`` to every session, turning recoverable errors into skips.

    A failing session is logged and recorded in ``skipped``; the remaining
    sessions still run. With ``require_any=True`` an empty session list, or
    a batch where every session was skipped, raises ``InsufficientDataError``.
    """

    if require_any and not sessions:
        raise InsufficientDataError(f"No sessions supplied for {label}")

    batch: BatchResult[R] = BatchResult()
    for session in sessions:
        try:
            batch.results[session.index] = fn(session)
        except RECOVERABLE_ERRORS as exc:
            logger.warning("%s: %s failed (%s: %s). Skipping.", session.label, label, type(exc).__name__, exc)
            batch.skipped[session.index] = str(exc)

    logger.info("%s: %d sessions processed, %d skipped", label, len(batch.results), len(batch.skipped))
    if require_any and not batch.results:
        raise InsufficientDataError(f"Every session was skipped for {label}")
    return batch


__all__ = ["BatchResult", "run_per_session"]
