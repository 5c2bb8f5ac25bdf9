"""
Sequential task runner.

Runs one async task per item, strictly in order: item i+1 starts only after
item i has finished. Each item's outcome is recorded. The failure policy
decides what happens when an item fails:

- FAIL_FAST: stop at the first failed item
- CONTINUE: record the failure and carry on with the next item

Only known failures (CardScienceError) are recorded; anything else is a bug
and propagates.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from cardscience.models.failure import CardScienceError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class FailurePolicy(str, Enum):
    """What to do when an item fails."""

    FAIL_FAST = "fail_fast"
    CONTINUE = "continue"


@dataclass
class ItemOutcome(Generic[R]):
    """Result or error of one item."""

    index: int
    result: R | None = None
    error: CardScienceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunReport(Generic[R]):
    """Outcomes of a run, in item order."""

    outcomes: list[ItemOutcome[R]] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def failures(self) -> list[ItemOutcome[R]]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def ok(self) -> bool:
        return not self.failures


async def run_sequential(
    items: Sequence[T],
    task: Callable[[int, T], Awaitable[R]],
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> RunReport[R]:
    """
    Run `task(index, item)` for each item, one after another.

    Args:
        items: Items to process
        task: Async callable; raising CardScienceError marks the item failed
        policy: FAIL_FAST or CONTINUE

    Returns:
        RunReport with one outcome per attempted item
    """
    report: RunReport[R] = RunReport()

    for index, item in enumerate(items):
        try:
            result = await task(index, item)
        except CardScienceError as e:
            logger.warning("Item %d failed: %s", index, e.reason)
            report.outcomes.append(ItemOutcome(index=index, error=e))
            if policy is FailurePolicy.FAIL_FAST:
                report.stopped_early = index < len(items) - 1
                break
            continue

        report.outcomes.append(ItemOutcome(index=index, result=result))

    return report
