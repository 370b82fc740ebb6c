"""Baker's percentage calculator.

Solves for flour given the total dough mass and the other ingredients as
fractions of flour::

    flour = M / (1 + hydration + salt + yeast + oil)

Every component is rounded to 0.1 g independently, so the rounded parts
sum to the total within a few tenths of a gram.
"""

from typing import Optional

from doughcalc.engine.units import round_to
from doughcalc.models.models import FlourMix, FlourMixWeights, WeightBreakdown
from doughcalc.utils.errors import ValidationError


def calculate_weights(
    total_dough_weight: float,
    hydration: float,
    salt: float,
    yeast: float,
    oil: float = 0.0,
    flour_mix: Optional[FlourMix] = None,
) -> WeightBreakdown:
    """Compute ingredient weights.

    Args:
        total_dough_weight: Ball count times weight per ball, in grams.
        hydration: Water as percent of flour (65 means 65%).
        salt: Salt as percent of flour.
        yeast: Yeast as percent of flour.
        oil: Oil as percent of flour, 0 when unused.
        flour_mix: Optional blend; the secondary share is 100 minus the primary.

    Returns:
        WeightBreakdown with every component rounded to 0.1 g. The blend split
        is computed from the rounded flour weight so primary + secondary equals it.

    Raises:
        ValidationError: negative mass or percentage.
    """
    if total_dough_weight <= 0:
        raise ValidationError("Total dough weight must be positive")
    for name, pct in (("hydration", hydration), ("salt", salt), ("yeast", yeast), ("oil", oil)):
        if pct < 0:
            raise ValidationError(f"{name} percentage must not be negative")

    fractions = (hydration + salt + yeast + oil) / 100
    flour = total_dough_weight / (1 + fractions)
    flour_weight = round_to(flour, 1)

    mix_weights = None
    if flour_mix is not None and flour_mix.is_blend:
        primary = round_to(flour_weight * flour_mix.primary_percentage / 100, 1)
        mix_weights = FlourMixWeights(primary=primary, secondary=round_to(flour_weight - primary, 1))

    return WeightBreakdown(
        flour_weight=flour_weight,
        water_weight=round_to(flour * hydration / 100, 1),
        salt_weight=round_to(flour * salt / 100, 1),
        yeast_weight=round_to(flour * yeast / 100, 1),
        oil_weight=round_to(flour * oil / 100, 1),
        flour_mix_weights=mix_weights,
    )
