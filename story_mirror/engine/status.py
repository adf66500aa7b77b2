"""Outcome aggregation: FAILED > PASSED > SKIPPED, UNSET yields to anything."""
from __future__ import annotations

from typing import TYPE_CHECKING

from story_mirror.types import Outcome

if TYPE_CHECKING:
    from collections.abc import Iterable

_PRECEDENCE = {
    Outcome.SKIPPED: 1,
    Outcome.PASSED: 2,
    Outcome.FAILED: 3,
}


def combine(current: Outcome, incoming: Outcome) -> Outcome:
    if incoming is Outcome.UNSET:
        return current
    if current is Outcome.UNSET:
        return incoming
    return current if _PRECEDENCE[current] >= _PRECEDENCE[incoming] else incoming


def fold(own: Outcome, children: Iterable[Outcome]) -> Outcome:
    result = own
    for outcome in children:
        result = combine(result, outcome)
    return result
