"""Status condition helpers with ``SetStatusCondition`` semantics."""

from __future__ import annotations

from datetime import datetime, timezone

from httpsource.models.meta import Condition, ConditionStatus

READY = "Ready"

SUCCEEDED_REASON = "Succeeded"


def find_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_condition(
    conditions: list[Condition],
    condition_type: str,
    status: ConditionStatus,
    reason: str,
    message: str = "",
    *,
    observed_generation: int = 0,
) -> Condition:
    """Add or update a condition in place.

    ``last_transition_time`` only moves when the status value changes.
    """
    existing = find_condition(conditions, condition_type)
    if existing is None:
        condition = Condition(
            type=condition_type,
            status=status,
            reason=reason,
            message=message,
            observed_generation=observed_generation,
        )
        conditions.append(condition)
        return condition

    if existing.status != status:
        existing.status = status
        existing.last_transition_time = datetime.now(timezone.utc)
    existing.reason = reason
    existing.message = message
    existing.observed_generation = observed_generation
    return existing


def is_ready(conditions: list[Condition]) -> bool:
    condition = find_condition(conditions, READY)
    return condition is not None and condition.status == ConditionStatus.TRUE
