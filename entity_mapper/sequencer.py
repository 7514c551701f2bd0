"""Strictly sequential processing of a worklist of completion-notified steps."""

from collections import deque
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from entity_mapper.errors import MapperError
from entity_mapper.models import Outcome

if TYPE_CHECKING:
    from entity_mapper.driver import Transaction

logger = structlog.get_logger()

T = TypeVar("T")
Complete = Callable[[MapperError | None], None]


class Sequencer(Generic[T]):
    """Runs one step per item, starting each step only after the previous one completed.

    A step receives the item and a ``complete`` callback which it must call
    exactly once, with ``None`` on success or the error. Steps that complete
    synchronously are driven by a loop, so the stack does not grow with the
    length of the worklist. The first error stops the run; ``on_done`` is
    called once with the resulting :class:`Outcome`.
    """

    def __init__(
        self,
        items: Iterable[T],
        step: Callable[[T, Complete], Any],
        on_done: Callable[[Outcome], Any] | None = None,
        transaction: "Transaction | None" = None,
        label: str = "sequence",
    ) -> None:
        self._pending: deque[T] = deque(items)
        self._step = step
        self._on_done = on_done
        self._label = label
        self.outcome = Outcome(total=len(self._pending), transaction=transaction)
        self._ready = False
        self._looping = False
        self._awaiting = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def run(self) -> None:
        """Start processing. Returns once the run finishes or a step is still pending."""
        logger.debug("Sequence started", label=self._label, total=self.outcome.total)
        self._ready = True
        self._drive()

    def _drive(self) -> None:
        if self._looping:
            return
        self._looping = True
        try:
            while self._ready and not self._finished:
                self._ready = False
                if self.outcome.error is not None or not self._pending:
                    self._finish()
                    break
                item = self._pending.popleft()
                self._awaiting = True
                try:
                    self._step(item, self._complete)
                except MapperError as e:
                    if self._awaiting:
                        self._complete(e)
                    else:
                        raise
        finally:
            self._looping = False

    def _complete(self, error: MapperError | None = None) -> None:
        if not self._awaiting:
            logger.warning("Ignoring repeated completion", label=self._label)
            return
        self._awaiting = False
        if error is None:
            self.outcome.completed += 1
        else:
            logger.error("Sequence step failed", label=self._label, error=str(error), completed=self.outcome.completed)
            self.outcome.error = error
        self._ready = True
        self._drive()

    def _finish(self) -> None:
        self._finished = True
        if self.outcome.ok:
            logger.info("Sequence completed", label=self._label, completed=self.outcome.completed)
        if self._on_done is not None:
            self._on_done(self.outcome)
