"""Shared fixtures: request payloads and dough plans built through the real engine."""

from typing import Any

import pytest

from doughcalc.engine.scheduler import FermentationScheduler
from doughcalc.models.models import RecipeRequest
from doughcalc.service.recipe_service import build_plan


def request_payload(**overrides: Any) -> dict[str, Any]:
    """Scenario A request: 4 x 280g Neapolitan, 65% water, 2.8% salt, same-day at 75°F."""
    payload: dict[str, Any] = {
        "style": "neapolitan",
        "doughBallCount": 4,
        "weightPerBall": 280,
        "recipe": {
            "hydration": 65,
            "salt": 2.8,
            "oil": 0,
            "fermentationClass": "same-day",
            "yeast": {"type": "instant"},
        },
        "fermentation": {"schedule": "same-day", "temperature": {"room": 75, "cold": 38}},
        "environment": {"roomTemperature": {"value": 75, "unit": "F"}, "ovenType": "home"},
    }
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(payload.get(key), dict):
            payload[key] = {**payload[key], **value}
        else:
            payload[key] = value
    return payload


def make_plan(**overrides: Any):
    return build_plan(RecipeRequest.model_validate(request_payload(**overrides)), FermentationScheduler())


@pytest.fixture
def payload() -> dict[str, Any]:
    return request_payload()


@pytest.fixture
def plan():
    """Same-day, 75°F, no oil, no cold phase."""
    return make_plan()


@pytest.fixture
def overnight_plan():
    """Overnight at 72°F with 3% oil: has a cold phase and an oil section."""
    return make_plan(
        recipe={"fermentationClass": "overnight", "oil": 3},
        environment={"roomTemperature": {"value": 72, "unit": "F"}},
    )


@pytest.fixture
def celsius_plan():
    """Cold fermentation at 22°C."""
    return make_plan(
        recipe={"fermentationClass": "cold"},
        environment={"roomTemperature": {"value": 22, "unit": "C"}},
    )


@pytest.fixture
def blend_plan():
    """70/30 Tipo 00 and bread flour blend."""
    return make_plan(
        recipe={"flourMix": {"primaryType": "Tipo 00", "secondaryType": "Bread flour", "primaryPercentage": 70}},
    )


@pytest.fixture
def plan_factory():
    """Build a plan from request overrides, e.g. ``plan_factory(recipe={"oil": 2})``."""
    return make_plan


@pytest.fixture
def payload_factory():
    return request_payload
