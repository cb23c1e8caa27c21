"""
Point rule evaluation.

Maps a rule descriptor and an entry's business parameters to a point amount.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger

from app.models.enums import PointRuleType
from app.services.points_engine.config import PointRule

# Reviewer-supplied reward, overrides the configured rule
POINTS_REWARD_KEY = "points_reward"
AMOUNT_KEY = "amount"


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a numeric value to a finite Decimal, None if impossible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def calculate_points(
    rule: PointRule, business_params: dict[str, Any] | None = None
) -> int:
    """
    Calculate points for one ledger entry.

    Rules:
    - business_params["points_reward"] present: returned as is
    - FIXED: configured value
    - PER_AMOUNT: floor(amount * rate); 0 when amount is missing or
      not a number
    - unknown rule type: 0, with a warning

    Args:
        rule: Point rule of the task
        business_params: Entry business parameters

    Returns:
        Point amount
    """
    params = business_params or {}

    if params.get(POINTS_REWARD_KEY) is not None:
        reward = _to_decimal(params[POINTS_REWARD_KEY])
        if reward is not None:
            return int(reward)
        logger.warning(
            "Ignoring non-numeric points_reward",
            extra={"points_reward": repr(params[POINTS_REWARD_KEY])},
        )

    if rule.type == PointRuleType.FIXED:
        return rule.value

    if rule.type == PointRuleType.PER_AMOUNT:
        amount = _to_decimal(params.get(AMOUNT_KEY))
        if amount is None:
            return 0
        return math.floor(amount * Decimal(str(rule.rate)))

    logger.warning(
        f"Unknown point rule type: {rule.type}",
        extra={"rule_type": str(rule.type)},
    )
    return 0
