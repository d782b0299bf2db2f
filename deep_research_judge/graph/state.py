"""PlanEvaluationState — the state object flowing through the plan-evaluation graph."""

from __future__ import annotations

import operator
from typing import Annotated, Any, TypedDict

from deep_research_judge.contracts import IterationDecision, PlanAttempt

# --- Reducers ---


def _replace(existing: Any, new: Any) -> Any:
    return new


def _replace_int(existing: int, new: int) -> int:
    return new


def _replace_bool(existing: bool, new: bool) -> bool:
    return new


def _either(existing: bool, new: bool) -> bool:
    """Sticky flag: once set it stays set."""
    return bool(existing) or bool(new)


# --- Graph State ---


class PlanEvaluationState(TypedDict):
    # Input (set once)
    query: str

    # Current plan; replaced only when a regeneration callback is supplied
    plan: Annotated[Any, _replace]

    # Attempt history (append-only, one entry per attempt)
    attempts: Annotated[list[PlanAttempt], operator.add]
    attempt_number: Annotated[int, _replace_int]

    # Outcome of the latest attempt
    passed: Annotated[bool, _replace_bool]
    last_decision: Annotated[IterationDecision | None, _replace]

    # True once any attempt escalated
    escalated: Annotated[bool, _either]
