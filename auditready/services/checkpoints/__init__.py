from auditready.services.checkpoints.calendar import (
    current_period,
    last_business_day,
    matches_period,
    parse_period,
    period_bounds,
    period_label,
    previous_period,
)
from auditready.services.checkpoints.generator import GenerateResult, generate_for_period
from auditready.services.checkpoints.seeding import SeedResult, seed_schedule

__all__ = [
    "GenerateResult",
    "SeedResult",
    "current_period",
    "generate_for_period",
    "last_business_day",
    "matches_period",
    "parse_period",
    "period_bounds",
    "period_label",
    "previous_period",
    "seed_schedule",
]
