"""Cache key fingerprint.

Near-duplicate requests share an entry: ball count is rounded to an even
number, ball weight to the nearest 10 g and percentages to one decimal
before hashing. Everything the prompt depends on is part of the key.
"""

import hashlib
import json
from typing import Any

from doughcalc.engine.units import round_half_up, round_to
from doughcalc.models.models import DoughPlan


FINGERPRINT_VERSION = "v1"


def _round_even(count: int) -> int:
    return max(2, 2 * round_half_up(count / 2))


def normalize_plan(plan: DoughPlan) -> dict[str, Any]:
    """Rounded, JSON-serializable view of the plan fields that shape the analysis."""
    mix = plan.flour_mix
    return {
        "style": plan.style_key,
        "doughBalls": _round_even(plan.dough_ball_count),
        "weightPerBall": int(round_to(plan.weight_per_ball / 10, 0)) * 10,
        "hydration": round_to(plan.hydration, 1),
        "salt": round_to(plan.salt, 1),
        "oil": round_to(plan.oil, 1),
        "yeast": plan.yeast_type.value,
        "fermentation": plan.schedule.fermentation_class.value,
        "totalHours": round_half_up(plan.schedule.total_hours),
        "flourMix": (
            [mix.primary_type.lower(), (mix.secondary_type or "").lower(), round_to(mix.primary_percentage, 1)]
            if mix is not None
            else None
        ),
        "oven": plan.oven_type.value,
        "maxOvenTemp": round_half_up(plan.max_oven_temp),
        "altitude": round_half_up(plan.altitude / 100) * 100 if plan.altitude else None,
        "room": str(plan.room_temperature),
        "cold": str(plan.cold_temperature) if plan.schedule.has_cold_phase else None,
        "autolyse": plan.autolyse,
    }


def fingerprint(plan: DoughPlan) -> str:
    """Stable cache key, e.g. ``analysis:v1:3f2a...``."""
    payload = json.dumps(normalize_plan(plan), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"analysis:{FINGERPRINT_VERSION}:{digest}"
