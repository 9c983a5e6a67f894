"""Penalty percentage resolution and stacking.

Two separate moments:

- Creation: ``penalty_percentage_for`` turns a penalty type (and, for
  severity types, a measured value) into a percentage. The result is
  frozen on the record; later config changes never touch it.
- Calculation: ``compute_penalty_percentage`` stacks the frozen
  percentages of the records that count for the month.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from incentive_engine.calculators.rules import (
    HUNDRED,
    NUCLEAR_PENALTY_TYPES,
    OrganizationConfig,
    SEVERITY_PENALTY_TYPES,
    PenaltyType,
)
from incentive_engine.calculators.types import ZERO, PenaltyComputation, PenaltyInput
from incentive_engine.errors import ValidationError

# "resolved" means the dispute was upheld, so the penalty stands
COUNTED_PENALTY_STATUSES = frozenset({"active", "resolved"})
NUCLEAR_TYPE_VALUES = frozenset(t.value for t in NUCLEAR_PENALTY_TYPES)


def _severity_distance(
    penalty_type: PenaltyType, severity: Decimal, config: OrganizationConfig
) -> Decimal:
    """How far past its threshold a severity value is (<= 0 means not past it)."""
    if penalty_type == PenaltyType.LOW_COMPLIANCE:
        return config.compliance_threshold - severity
    if penalty_type == PenaltyType.HIGH_ERROR_RATE:
        return severity - config.error_rate_threshold
    if penalty_type == PenaltyType.LOW_TEAM_EVAL:
        return config.team_eval_threshold - severity
    raise ValidationError(f"{penalty_type.value} does not take a severity value")


def penalty_percentage_for(
    penalty_type: PenaltyType,
    severity: Decimal | None,
    config: OrganizationConfig,
) -> Decimal:
    """Resolve the percentage a new penalty record will carry.

    Fixed types use the configured percentage. Severity types require a
    value beyond the threshold and scale the base percentage by the
    distance, floored at the base and capped at 100.

    Raises:
        ValidationError: missing or non-qualifying severity value, or a
            penalty type configured at 0%.
    """
    base = config.base_penalty_percentage(penalty_type)

    if penalty_type in SEVERITY_PENALTY_TYPES:
        if severity is None:
            raise ValidationError(
                f"{penalty_type.value} requires a severity value",
                penalty_type=penalty_type.value,
            )
        distance = _severity_distance(penalty_type, Decimal(str(severity)), config)
        if distance <= 0:
            raise ValidationError(
                f"Severity value {severity} does not cross the "
                f"{penalty_type.value} threshold",
                penalty_type=penalty_type.value,
            )
        percentage = min(max(base, base * distance), HUNDRED)
    else:
        percentage = base

    if percentage <= 0:
        raise ValidationError(
            f"Penalty type {penalty_type.value} is disabled (0%)",
            penalty_type=penalty_type.value,
        )
    return percentage


def compute_penalty_percentage(
    records: Iterable[PenaltyInput], config: OrganizationConfig
) -> PenaltyComputation:
    """Total deduction percentage for a user's month.

    Only ``active`` and ``resolved`` records count. The additive group is
    clamped at ``penalty_ceiling_percentage``; any counted nuclear penalty
    forces exactly 100% regardless of the rest.
    """
    counted: list[PenaltyInput] = []
    excluded: list[PenaltyInput] = []
    for record in records:
        if record.status in COUNTED_PENALTY_STATUSES:
            counted.append(record)
        else:
            excluded.append(record)

    nuclear = any(r.penalty_type in NUCLEAR_TYPE_VALUES for r in counted)
    additive_total = sum(
        (r.penalty_percentage for r in counted if r.penalty_type not in NUCLEAR_TYPE_VALUES),
        ZERO,
    )

    ceiling = config.penalty_ceiling_percentage
    ceiling_applied = additive_total > ceiling
    percentage = min(additive_total, ceiling)
    if nuclear:
        percentage = HUNDRED

    return PenaltyComputation(
        percentage=percentage,
        additive_total=additive_total,
        counted=counted,
        excluded=excluded,
        nuclear=nuclear,
        ceiling_applied=ceiling_applied and not nuclear,
    )
