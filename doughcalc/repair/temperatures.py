"""Temperature token normalization.

The model sometimes converts the room temperature (75°F becomes 23.9°C),
emits both units side by side ("75°F (24°C)"), repeats the unit ("75°F°F")
or writes a bare temperature where a JSON value belongs. Every
dough-range temperature in the text is rewritten to the nearest request
literal, room or cold. Conversion is used only to pick which literal; the
literal itself is never converted. Oven temperatures fall outside the
dough range and are left alone.
"""

import re
from typing import Optional

from doughcalc.engine.units import to_celsius
from doughcalc.models.models import TemperatureLiteral, TemperatureUnit
from doughcalc.repair.balancer import string_mask


# Dough never sits outside this range (°C): freezer to hot proofing box
DOUGH_RANGE_C = (-10.0, 45.0)

_NUM = r"-?\d+(?:\.\d+)?"
_VALUE = rf"{_NUM}(?:\s*(?:-|–|to)\s*{_NUM})?"
_MARK = r"(?:°|º|\\u00b0|\\u00ba|\s*degrees?\b|\s*deg\b\.?)"
_UNIT = r"(?:F(?:ahrenheit)?|C(?:elsius)?)(?![A-Za-z])"
_TEMP = rf"{_VALUE}\s*(?:{_MARK}\s*{_UNIT}|(?:Fahrenheit|Celsius)(?![A-Za-z])|[FC](?![A-Za-z]))"
_DUPLICATE_UNIT = r"(?:\s*(?:°|º)\s*[FC](?![A-Za-z]))*"
_PAIRED = rf"(?:\s*\(\s*(?:approx\.?\s*|about\s*|~\s*)?{_TEMP}{_DUPLICATE_UNIT}\s*\)|\s*/\s*{_TEMP}{_DUPLICATE_UNIT})?"

TEMPERATURE_PATTERN = re.compile(rf"(?<![\w.\-–]){_TEMP}{_DUPLICATE_UNIT}{_PAIRED}")

_FIRST_NUMBER = re.compile(_NUM)
_UNIT_LETTER = re.compile(r"[FC]")


def parse_temperature(token: str) -> Optional[tuple[float, TemperatureUnit]]:
    """First value and unit of a matched temperature token."""
    number = _FIRST_NUMBER.search(token)
    if number is None:
        return None
    unit = _UNIT_LETTER.search(token, number.end())
    if unit is None:
        return None
    return float(number.group()), TemperatureUnit(unit.group())


def nearest_literal(
    value: float, unit: TemperatureUnit, room: TemperatureLiteral, cold: TemperatureLiteral
) -> Optional[TemperatureLiteral]:
    """Room or cold literal closest to the given temperature, None outside the dough range."""
    value_c = to_celsius(value, unit)
    low, high = DOUGH_RANGE_C
    if not low <= value_c <= high:
        return None
    room_c = to_celsius(room.value, room.unit)
    cold_c = to_celsius(cold.value, cold.unit)
    return cold if abs(value_c - cold_c) < abs(value_c - room_c) else room


def normalize_temperatures(
    text: str, room: TemperatureLiteral, cold: TemperatureLiteral, json_text: bool = True
) -> str:
    """Rewrite temperature tokens in ``text`` to the request literals.

    Args:
        text: Raw model output (``json_text=True``) or a single string value.
        room: Room-temperature literal of the request.
        cold: Refrigeration literal for the request's unit.
        json_text: Quote literals found outside string values, so ``"temperature": 75°F``
            becomes ``"temperature": "75°F"``.

    Returns:
        Text with every dough-range temperature replaced by a literal.
    """
    mask = string_mask(text) if json_text else None

    def _replace(match: re.Match) -> str:
        parsed = parse_temperature(match.group())
        if parsed is None:
            return match.group()
        literal = nearest_literal(parsed[0], parsed[1], room, cold)
        if literal is None:
            return match.group()
        if mask is not None and not mask[match.start()]:
            return f'"{literal}"'
        return str(literal)

    return TEMPERATURE_PATTERN.sub(_replace, text)
