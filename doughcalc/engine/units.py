"""Unit and rounding utilities shared by the engine, prompts and repair pipeline."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from doughcalc.models.models import TemperatureLiteral, TemperatureUnit


# Literal fermentation temperatures per unit system. Never derived from each
# other by conversion: 75°F is echoed as 75°F, 22°C as 22°C.
ROOM_TEMPERATURE: dict[TemperatureUnit, float] = {
    TemperatureUnit.FAHRENHEIT: 75,
    TemperatureUnit.CELSIUS: 22,
}
COLD_TEMPERATURE: dict[TemperatureUnit, float] = {
    TemperatureUnit.FAHRENHEIT: 38,
    TemperatureUnit.CELSIUS: 4,
}


def round_to(value: float, decimals: int = 1) -> float:
    """Round half-up (2.25 -> 2.3), unlike the banker's rounding of ``round``."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_number(value: float) -> str:
    """Render a number without trailing zeros: 75.0 -> "75", 22.50 -> "22.5"."""
    rounded = round_to(value, 2)
    if rounded.is_integer():
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0").rstrip(".")


def format_weight(grams: float) -> str:
    return f"{format_number(round_to(grams, 1))}g"


def format_hours(hours: float) -> str:
    if hours == 1:
        return "1 hour"
    if hours < 1:
        return f"{format_number(hours * 60)} minutes"
    return f"{format_number(hours)} hours"


def to_celsius(value: float, unit: TemperatureUnit) -> float:
    if unit == TemperatureUnit.CELSIUS:
        return value
    return (value - 32) * 5 / 9


def room_literal(unit: TemperatureUnit, value: Optional[float] = None) -> TemperatureLiteral:
    """Room-temperature literal: the caller's value when given, else the unit constant."""
    return TemperatureLiteral(value=ROOM_TEMPERATURE[unit] if value is None else value, unit=unit)


def cold_literal(unit: TemperatureUnit) -> TemperatureLiteral:
    return TemperatureLiteral(value=COLD_TEMPERATURE[unit], unit=unit)
