"""Unit tests for temperature token normalization."""

import pytest

from doughcalc.engine.units import cold_literal, room_literal
from doughcalc.models.models import TemperatureUnit
from doughcalc.repair.temperatures import nearest_literal, normalize_temperatures, parse_temperature

F = TemperatureUnit.FAHRENHEIT
C = TemperatureUnit.CELSIUS
ROOM_F = room_literal(F)
COLD_F = cold_literal(F)
ROOM_C = room_literal(C)
COLD_C = cold_literal(C)


def normalize_f(text, json_text=False):
    return normalize_temperatures(text, ROOM_F, COLD_F, json_text=json_text)


class TestParseTemperature:
    @pytest.mark.parametrize(
        "token,expected",
        [("75°F", (75.0, F)), ("23.9°C", (23.9, C)), ("75 degrees F", (75.0, F)), ("75°F (24°C)", (75.0, F))],
    )
    def test_first_value_and_unit(self, token, expected):
        assert parse_temperature(token) == expected

    def test_no_unit(self):
        assert parse_temperature("75") is None


class TestNearestLiteral:
    def test_room_range(self):
        assert nearest_literal(24, C, ROOM_F, COLD_F) == ROOM_F

    def test_fridge_range(self):
        assert nearest_literal(3, C, ROOM_F, COLD_F) == COLD_F

    def test_oven_temperatures_are_out_of_range(self):
        assert nearest_literal(550, F, ROOM_F, COLD_F) is None


class TestNormalizeTemperatures:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Keep at 23.9°C", "Keep at 75°F"),
            ("Keep at 75°F (24°C)", "Keep at 75°F"),
            ("Keep at 75°F / 24°C", "Keep at 75°F"),
            ("Keep at 75°F°F", "Keep at 75°F"),
            ("Keep at 75 degrees F", "Keep at 75°F"),
            ("Keep at 70-75°F", "Keep at 75°F"),
            ("Refrigerate at 3°C", "Refrigerate at 38°F"),
        ],
    )
    def test_rewrites_to_request_literals(self, text, expected):
        assert normalize_f(text) == expected

    def test_oven_temperature_untouched(self):
        assert normalize_f("Bake at 550°F") == "Bake at 550°F"

    def test_celsius_request_never_gains_fahrenheit(self):
        text = normalize_temperatures("Proof at 72°F, then chill at 38°F", ROOM_C, COLD_C, json_text=False)

        assert text == "Proof at 22°C, then chill at 4°C"

    def test_fahrenheit_literal_is_not_converted(self):
        room = room_literal(F, 72)

        assert normalize_temperatures("Proof at 22.2°C", room, COLD_F, json_text=False) == "Proof at 72°F"

    def test_bare_json_value_is_quoted(self):
        text = normalize_f('{"temperature": 75°F, "note": "at 24°C"}', json_text=True)

        assert text == '{"temperature": "75°F", "note": "at 75°F"}'

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Ferment at 22.2 C which is ideal", "Ferment at 72°F which is ideal"),
            ("Ferment at 72 F overnight", "Ferment at 72°F overnight"),
            ("Chill at 3 C.", "Chill at 38°F."),
            ("Keep at 72°F (22 C)", "Keep at 72°F"),
        ],
    )
    def test_unit_letter_after_a_space(self, text, expected):
        room = room_literal(F, 72)

        assert normalize_temperatures(text, room, COLD_F, json_text=False) == expected

    def test_standalone_unit_letter_only(self):
        assert normalize_f("Mix 2 Cups of flour") == "Mix 2 Cups of flour"
