"""Unit tests for the recipe service: caching, fallback, deadline and response assembly."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from doughcalc.cache.fingerprint import fingerprint
from doughcalc.cache.layered import LayeredCache
from doughcalc.cache.memory import MemoryCache
from doughcalc.engine.scheduler import FermentationScheduler
from doughcalc.gateway.completion import CompletionGateway
from doughcalc.models.models import RecipeRequest
from doughcalc.repair.pipeline import ResponseRepairPipeline
from doughcalc.service.factory import create_cache, create_rate_limiter, create_recipe_service
from doughcalc.service.recipe_service import CacheStatus, RecipeService, assemble_response
from doughcalc.utils.config import Config
from doughcalc.utils.errors import ConfigurationError, UpstreamError, UpstreamTimeout, ValidationError

MODEL_RESPONSE = json.dumps(
    {
        "flourRecommendation": "Caputo Pizzeria, a Tipo 00 flour around 12.5% protein",
        "technicalAnalysis": "A long same-day bulk at 75°F builds flavor without a fridge.",
    }
)


def service_fallback(plan):
    return ResponseRepairPipeline(plan).fallback().to_wire()


@pytest.fixture
def gateway():
    gateway = MagicMock(spec=CompletionGateway)
    gateway.complete = AsyncMock(return_value=MODEL_RESPONSE)
    return gateway


@pytest.fixture
def memory():
    return MemoryCache()


@pytest.fixture
def service(gateway, memory):
    return RecipeService(
        cache=LayeredCache(memory),
        gateway=gateway,
        scheduler=FermentationScheduler(),
        request_timeout=5,
        retry_after=7,
    )


@pytest.fixture
def request_model(payload):
    return RecipeRequest.model_validate(payload)


class TestCaching:
    @pytest.mark.asyncio
    async def test_second_identical_request_is_a_hit(self, service, gateway, request_model):
        first = await service.calculate(request_model)
        second = await service.calculate(request_model)

        assert first.cache_status == CacheStatus.MISS
        assert second.cache_status == CacheStatus.HIT
        assert second.body == first.body
        gateway.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_near_duplicate_request_is_a_hit(self, service, gateway, request_model, payload_factory):
        await service.calculate(request_model)

        outcome = await service.calculate(RecipeRequest.model_validate(payload_factory(weightPerBall=282)))

        assert outcome.cache_status == CacheStatus.HIT
        assert outcome.body["weights"]["flourWeight"] != 666.3
        gateway.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bypass_neither_reads_nor_writes(self, service, gateway, memory, request_model):
        await service.calculate(request_model)

        outcome = await service.calculate(request_model, use_cache=False)

        assert outcome.cache_status == CacheStatus.BYPASS
        assert gateway.complete.await_count == 2
        assert len(memory) == 1

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(self, service, gateway, memory, request_model):
        gateway.complete.return_value = "I'm sorry, I can't produce JSON right now."

        outcome = await service.calculate(request_model)
        again = await service.calculate(request_model)

        assert outcome.cache_status == CacheStatus.FALLBACK
        assert again.cache_status == CacheStatus.FALLBACK
        assert len(memory) == 0
        assert outcome.body["weights"]["flourWeight"] == 666.3
        assert outcome.body["timeline"]

    @pytest.mark.asyncio
    async def test_malformed_cache_entry_is_replaced(self, service, gateway, memory, plan):
        await memory.set(fingerprint(plan), {"flourRecommendation": 12})

        _, status = await service.analyze(plan)

        assert status == CacheStatus.MISS
        gateway.complete.assert_awaited_once()
        assert (await memory.get(fingerprint(plan)))["flourRecommendation"].startswith("Caputo")

    @pytest.mark.asyncio
    async def test_hit_served_without_api_key(self, memory, request_model):
        gateway = CompletionGateway(api_key="", model="gemini-2.5-flash")
        service = RecipeService(LayeredCache(memory), gateway, FermentationScheduler())
        plan = service.build_plan(request_model)
        await memory.set(fingerprint(plan), service_fallback(plan))

        outcome = await service.calculate(request_model)

        assert outcome.cache_status == CacheStatus.HIT

    @pytest.mark.asyncio
    async def test_miss_without_api_key(self, memory, request_model):
        gateway = CompletionGateway(api_key="", model="gemini-2.5-flash")
        service = RecipeService(LayeredCache(memory), gateway, FermentationScheduler())

        with pytest.raises(ConfigurationError):
            await service.calculate(request_model)


class TestFailures:
    @pytest.mark.asyncio
    async def test_upstream_error_gets_retry_hint(self, service, gateway, request_model):
        gateway.complete.side_effect = UpstreamError("Completion service error: overloaded")

        with pytest.raises(UpstreamError) as exc_info:
            await service.calculate(request_model)

        assert exc_info.value.retry_after == 7
        assert exc_info.value.to_payload()["isTimeout"] is False

    @pytest.mark.asyncio
    async def test_deadline_detaches_and_fills_cache(self, service, gateway, memory, request_model):
        async def slow_complete(prompt, system_instruction):
            await asyncio.sleep(0.1)
            return MODEL_RESPONSE

        gateway.complete.side_effect = slow_complete
        service.request_timeout = 0.01

        with pytest.raises(UpstreamTimeout) as exc_info:
            await service.calculate(request_model)

        assert exc_info.value.retry_after == 7
        assert exc_info.value.to_payload()["isTimeout"] is True
        assert exc_info.value.to_payload()["error"] == "Service busy"

        await service.drain()
        assert len(memory) == 1
        service.request_timeout = 5
        outcome = await service.calculate(request_model)
        assert outcome.cache_status == CacheStatus.HIT
        assert gateway.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_style(self, service, gateway, payload_factory):
        request = RecipeRequest.model_validate(payload_factory(style="chicago-tavern"))

        with pytest.raises(ValidationError, match="Invalid pizza style: chicago-tavern"):
            await service.calculate(request)

        gateway.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_schedule_too_short(self, service, gateway, payload_factory):
        target = datetime.now(timezone.utc) + timedelta(hours=3)
        request = RecipeRequest.model_validate(
            payload_factory(
                recipe={"fermentationClass": "custom"},
                fermentation={"schedule": "custom", "targetDate": target.isoformat()},
            )
        )

        with pytest.raises(ValidationError, match="at least 4"):
            await service.calculate(request)

        gateway.complete.assert_not_awaited()


class TestResponseBody:
    @pytest.mark.asyncio
    async def test_recipe_fields(self, service, request_model):
        body = (await service.calculate(request_model)).body

        assert body["flourRecommendation"].startswith("Caputo")
        assert body["hydration"] == 65
        assert body["yeast"] == {"type": "instant", "percentage": 0.3}
        assert body["weights"] == {
            "flourWeight": 666.3,
            "waterWeight": 433.1,
            "saltWeight": 18.7,
            "yeastWeight": 2.0,
            "oilWeight": 0,
            "totalWeight": 1120.1,
        }
        assert body["advancedOptions"] == {"preferment": False, "autolyse": False, "additionalIngredients": []}
        assert "recipe" not in body

    def test_fermentation_schedule_uses_literals(self, overnight_plan):
        body = assemble_response(overnight_plan, service_fallback(overnight_plan))
        room = body["fermentationSchedule"]["room"]
        cold = body["fermentationSchedule"]["cold"]

        assert room["temperature"] == "72°F"
        assert cold["temperature"] == "38°F"
        assert room["hours"] + cold["hours"] == body["schedule"]["totalHours"]
        assert [p["kind"] for p in body["schedule"]["phases"]][0] == "mix"
        assert body["detailedAnalysis"]["oilAnalysis"]["percentage"] == 3

    def test_blend_echoes_flour_mix(self, blend_plan):
        body = assemble_response(blend_plan, service_fallback(blend_plan))

        assert body["recipe"]["flourMix"] == {
            "primaryType": "Tipo 00",
            "secondaryType": "Bread flour",
            "primaryPercentage": 70,
        }
        assert body["weights"]["flourMixWeights"]["primary"] == 466.4


class TestFactory:
    def test_memory_only_without_upstash(self, monkeypatch):
        monkeypatch.delenv("UPSTASH_REDIS_REST_URL", raising=False)
        monkeypatch.delenv("UPSTASH_REDIS_REST_TOKEN", raising=False)

        assert not create_cache(Config()).persistent_enabled

    def test_two_tiers_with_upstash(self, monkeypatch):
        monkeypatch.setenv("UPSTASH_REDIS_REST_URL", "https://example.upstash.io")
        monkeypatch.setenv("UPSTASH_REDIS_REST_TOKEN", "token")

        assert create_cache(Config()).persistent_enabled

    def test_service_wiring(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "12")
        monkeypatch.setenv("MIN_CUSTOM_HOURS", "6")

        service = create_recipe_service(Config())

        assert service.request_timeout == 12
        assert service.gateway.api_key == "test-key"
        assert service.scheduler.min_custom_hours == 6

    def test_rate_limiter_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        assert create_rate_limiter(Config()) is None

        monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
        monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "5")
        assert create_rate_limiter(Config()).per_minute == 5
