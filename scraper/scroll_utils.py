"""
Incremental-load loop shared by the collectors.

The results view streams content lazily with no authoritative total, so the
loop stops on the first of three conditions, checked once per iteration in
this order:
- sufficiency: enough elements are rendered
- exhaustion: the rendered count stopped changing
- budget: the iteration limit is reached
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    SUFFICIENT = "sufficient"
    EXHAUSTED = "exhausted"
    BUDGET = "budget"


@dataclass(frozen=True)
class ScrollPolicy:
    min_items: int = 15
    max_loops: int = 30
    settle_ms: int = 1200
    wheel_px: int = 2800
    stable_rounds: int = 1


@dataclass(frozen=True)
class ScrollOutcome:
    reason: StopReason
    iterations: int
    count: int


def is_sufficient(count: int, policy: ScrollPolicy) -> bool:
    return count >= policy.min_items


def is_exhausted(unchanged_rounds: int, policy: ScrollPolicy) -> bool:
    return unchanged_rounds >= policy.stable_rounds


def is_budget_spent(iterations: int, policy: ScrollPolicy) -> bool:
    return iterations >= policy.max_loops


def evaluate_stop(
    count: int,
    unchanged_rounds: int,
    iterations: int,
    policy: ScrollPolicy,
) -> Optional[StopReason]:
    if is_sufficient(count, policy):
        return StopReason.SUFFICIENT
    if is_exhausted(unchanged_rounds, policy):
        return StopReason.EXHAUSTED
    if is_budget_spent(iterations, policy):
        return StopReason.BUDGET
    return None


def scroll_until_sufficient(
    count_fn: Callable[[], int],
    advance_fn: Callable[[int], None],
    settle_fn: Callable[[int], None],
    policy: ScrollPolicy = ScrollPolicy(),
    on_loop: Optional[Callable[[int, int], None]] = None,
) -> ScrollOutcome:
    """
    Drive the loop.
    - count_fn: returns the number of currently rendered result elements
    - advance_fn: called with policy.wheel_px to move the viewport
    - settle_fn: called with policy.settle_ms to let rendering catch up
    - on_loop: optional callable (iteration, count) for progress reporting
    """
    previous = count_fn()
    if is_sufficient(previous, policy):
        return ScrollOutcome(StopReason.SUFFICIENT, 0, previous)

    iterations = 0
    unchanged_rounds = 0
    while True:
        advance_fn(policy.wheel_px)
        settle_fn(policy.settle_ms)
        iterations += 1

        count = count_fn()
        if count == previous:
            unchanged_rounds += 1
        else:
            unchanged_rounds = 0
        previous = count

        if on_loop:
            on_loop(iterations, count)

        reason = evaluate_stop(count, unchanged_rounds, iterations, policy)
        if reason is not None:
            logger.info("scroll loop stopped: reason=%s iterations=%d count=%d", reason.value, iterations, count)
            return ScrollOutcome(reason, iterations, count)
