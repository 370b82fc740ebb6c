"""Yeast percentage model.

Maps a fermentation class (or, for custom schedules, the planned total
hours) to a yeast percentage of flour weight. Shorter fermentations need
more yeast. The room temperature nudges the figure with a Q10 factor of 2:
yeast activity roughly doubles per 10°C, so a warmer room needs less.
"""

from typing import Optional

from doughcalc.engine.units import ROOM_TEMPERATURE, round_to, to_celsius
from doughcalc.models.models import FermentationClass, TemperatureLiteral
from doughcalc.utils.errors import ValidationError


MIN_YEAST_PERCENTAGE = 0.05
MAX_YEAST_PERCENTAGE = 1.0
Q10 = 2.0

CLASS_YEAST_PERCENTAGE: dict[FermentationClass, float] = {
    FermentationClass.QUICK: 0.4,
    FermentationClass.SAME_DAY: 0.3,
    FermentationClass.OVERNIGHT: 0.2,
    FermentationClass.COLD: 0.15,
}

# (upper bound in hours, percentage); the last band has no upper bound
CUSTOM_YEAST_BANDS: list[tuple[float, float]] = [
    (4, 0.4),
    (12, 0.3),
    (24, 0.2),
]
CUSTOM_LONG_YEAST_PERCENTAGE = 0.15


def base_yeast_percentage(
    fermentation_class: FermentationClass, total_hours: Optional[float] = None
) -> float:
    """Step-function yeast percentage before the temperature adjustment.

    Args:
        fermentation_class: Canonical class or custom.
        total_hours: Planned total fermentation hours; required for custom.

    Raises:
        ValidationError: custom class without planned hours.
    """
    if fermentation_class != FermentationClass.CUSTOM:
        return CLASS_YEAST_PERCENTAGE[fermentation_class]
    if total_hours is None:
        raise ValidationError("Custom fermentation requires a target time or duration")
    for upper_bound, percentage in CUSTOM_YEAST_BANDS:
        if total_hours <= upper_bound:
            return percentage
    return CUSTOM_LONG_YEAST_PERCENTAGE


def temperature_factor(room: TemperatureLiteral) -> float:
    """Q10 scaling relative to the unit's reference room temperature (1.0 at the reference)."""
    reference_c = to_celsius(ROOM_TEMPERATURE[room.unit], room.unit)
    room_c = to_celsius(room.value, room.unit)
    return Q10 ** ((reference_c - room_c) / 10.0)


def yeast_percentage(
    fermentation_class: FermentationClass,
    room: TemperatureLiteral,
    total_hours: Optional[float] = None,
) -> float:
    """Yeast as a percentage of flour weight, clamped to [0.05, 1.0] and rounded to 2 decimals."""
    pct = base_yeast_percentage(fermentation_class, total_hours) * temperature_factor(room)
    return round_to(min(MAX_YEAST_PERCENTAGE, max(MIN_YEAST_PERCENTAGE, pct)), 2)
