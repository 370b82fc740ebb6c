"""Unit tests for the yeast percentage model."""

import pytest

from doughcalc.engine.units import room_literal
from doughcalc.engine.yeast import (
    MAX_YEAST_PERCENTAGE,
    MIN_YEAST_PERCENTAGE,
    base_yeast_percentage,
    temperature_factor,
    yeast_percentage,
)
from doughcalc.models.models import FermentationClass, TemperatureUnit
from doughcalc.utils.errors import ValidationError

ROOM_F = room_literal(TemperatureUnit.FAHRENHEIT)
ROOM_C = room_literal(TemperatureUnit.CELSIUS)


class TestBasePercentage:
    @pytest.mark.parametrize(
        "fermentation_class,expected",
        [
            (FermentationClass.QUICK, 0.4),
            (FermentationClass.SAME_DAY, 0.3),
            (FermentationClass.OVERNIGHT, 0.2),
            (FermentationClass.COLD, 0.15),
        ],
    )
    def test_canonical_classes(self, fermentation_class, expected):
        assert base_yeast_percentage(fermentation_class) == expected

    @pytest.mark.parametrize("hours,expected", [(4, 0.4), (6, 0.3), (12, 0.3), (18, 0.2), (24, 0.2), (48, 0.15)])
    def test_custom_bands(self, hours, expected):
        assert base_yeast_percentage(FermentationClass.CUSTOM, hours) == expected

    def test_custom_requires_hours(self):
        with pytest.raises(ValidationError):
            base_yeast_percentage(FermentationClass.CUSTOM)

    def test_monotonically_non_increasing_in_hours(self):
        hours = [h / 2 for h in range(8, 200)]
        values = [yeast_percentage(FermentationClass.CUSTOM, ROOM_F, h) for h in hours]

        assert all(later <= earlier for earlier, later in zip(values, values[1:]))


class TestTemperatureFactor:
    def test_no_change_at_reference(self):
        assert temperature_factor(ROOM_F) == pytest.approx(1.0)
        assert temperature_factor(ROOM_C) == pytest.approx(1.0)

    def test_warmer_room_needs_less_yeast(self):
        warm = room_literal(TemperatureUnit.CELSIUS, 32)

        assert temperature_factor(warm) == pytest.approx(0.5)

    def test_cooler_room_needs_more_yeast(self):
        cool = room_literal(TemperatureUnit.FAHRENHEIT, 68)

        assert temperature_factor(cool) > 1


class TestYeastPercentage:
    def test_same_day_at_reference(self):
        assert yeast_percentage(FermentationClass.SAME_DAY, ROOM_F) == 0.3

    def test_overnight_at_72f(self):
        # 0.2 x 2^((23.9 - 22.2) / 10) = 0.2245
        assert yeast_percentage(FermentationClass.OVERNIGHT, room_literal(TemperatureUnit.FAHRENHEIT, 72)) == 0.22

    def test_clamped_to_bounds(self):
        freezing = room_literal(TemperatureUnit.CELSIUS, -5)
        hot = room_literal(TemperatureUnit.CELSIUS, 60)

        assert yeast_percentage(FermentationClass.QUICK, freezing) == MAX_YEAST_PERCENTAGE
        assert yeast_percentage(FermentationClass.COLD, hot) == MIN_YEAST_PERCENTAGE
