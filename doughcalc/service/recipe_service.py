"""Recipe calculation service: the request pipeline behind the endpoint.

    request -> DoughPlan (deterministic, never calls the model)
            -> cache lookup
            -> prompt -> completion -> repair
            -> cache write (model output only, never fallbacks)
            -> response body

The analysis half runs under one overall deadline. When it fires the
request gets ``UpstreamTimeout``; the in-flight work is left running
detached (not cancelled) and, if it finishes, fills the cache so the
client's retry is served from it.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from doughcalc.cache.fingerprint import fingerprint
from doughcalc.cache.layered import LayeredCache
from doughcalc.engine.bakers import calculate_weights
from doughcalc.engine.scheduler import FermentationScheduler
from doughcalc.engine.units import cold_literal, format_number, room_literal
from doughcalc.engine.yeast import yeast_percentage
from doughcalc.gateway.completion import CompletionGateway
from doughcalc.models.analysis import AnalysisResult
from doughcalc.models.models import DoughPlan, FermentationClass, PhaseKind, RecipeRequest
from doughcalc.models.styles import OVEN_MAX_TEMPS, PIZZA_STYLES, get_style
from doughcalc.prompts.prompts import build_analysis_prompt, get_system_instructions
from doughcalc.repair.pipeline import ResponseRepairPipeline
from doughcalc.utils.errors import UpstreamError, UpstreamTimeout, ValidationError
from doughcalc.utils.logger import logger


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    BYPASS = "BYPASS"
    FALLBACK = "FALLBACK"


@dataclass
class RecipeOutcome:
    body: dict[str, Any]
    cache_status: CacheStatus


def build_plan(request: RecipeRequest, scheduler: FermentationScheduler) -> DoughPlan:
    """Deterministic baseline: weights, yeast and schedule for a request.

    Raises:
        ValidationError: Unknown style, custom schedule without a target,
            or a custom schedule shorter than the minimum.
    """
    style = get_style(request.style)
    if style is None:
        raise ValidationError(
            f"Invalid pizza style: {request.style}. Known styles: {', '.join(sorted(PIZZA_STYLES))}"
        )

    unit = request.unit
    environment = request.environment
    room_value = (
        environment.room_temperature.value
        if environment.room_temperature is not None
        else request.fermentation.temperature.room
    )
    room = room_literal(unit, room_value)
    cold = cold_literal(unit)

    recipe = request.recipe
    fermentation_class = recipe.fermentation_class
    total_hours: Optional[float] = None
    if fermentation_class == FermentationClass.CUSTOM:
        duration = request.fermentation.duration
        total_hours = scheduler.custom_total_hours(
            target=request.fermentation.target_date,
            planned_hours=duration.max if duration is not None else None,
        )

    schedule = scheduler.schedule(fermentation_class, room, cold, total_hours)
    yeast = yeast_percentage(fermentation_class, room, schedule.total_hours)

    hydration = recipe.hydration if recipe.hydration is not None else style.default_hydration
    salt = recipe.salt if recipe.salt is not None else style.default_salt
    oil = recipe.oil if recipe.oil is not None else (style.default_oil or 0.0)

    weights = calculate_weights(
        request.total_dough_weight,
        hydration=hydration,
        salt=salt,
        yeast=yeast,
        oil=oil,
        flour_mix=recipe.flour_mix,
    )

    return DoughPlan(
        style_key=style.key,
        dough_ball_count=request.dough_ball_count,
        weight_per_ball=request.weight_per_ball,
        hydration=hydration,
        salt=salt,
        oil=oil,
        yeast_type=recipe.yeast.type,
        yeast_percentage=yeast,
        flour_mix=recipe.flour_mix,
        schedule=schedule,
        weights=weights,
        oven_type=environment.oven_type,
        max_oven_temp=environment.max_oven_temp or OVEN_MAX_TEMPS[environment.oven_type],
        altitude=environment.altitude,
        autolyse=request.analysis_preferences.autolyse,
    )


def _milestones(plan: DoughPlan, *kinds: PhaseKind) -> list[str]:
    return [m for p in plan.schedule.phases if p.kind in kinds for m in p.milestones]


def assemble_response(plan: DoughPlan, analysis: dict[str, Any]) -> dict[str, Any]:
    """Merge the analysis with the deterministic recipe fields."""
    schedule = plan.schedule
    weights = plan.weights
    weights_body: dict[str, Any] = {
        "flourWeight": weights.flour_weight,
        "waterWeight": weights.water_weight,
        "saltWeight": weights.salt_weight,
        "yeastWeight": weights.yeast_weight,
        "oilWeight": weights.oil_weight,
        "totalWeight": weights.total_weight,
    }
    if weights.flour_mix_weights is not None:
        weights_body["flourMixWeights"] = {
            "primary": weights.flour_mix_weights.primary,
            "secondary": weights.flour_mix_weights.secondary,
        }

    body = dict(analysis)
    body.update(
        {
            "hydration": plan.hydration,
            "salt": plan.salt,
            "oil": plan.oil,
            "yeast": {"type": plan.yeast_type.value, "percentage": plan.yeast_percentage},
            "fermentationSchedule": {
                "room": {
                    "hours": schedule.room_hours,
                    "temperature": str(plan.room_temperature),
                    "milestones": _milestones(plan, PhaseKind.BULK, PhaseKind.PROOF),
                },
                "cold": {
                    "hours": schedule.cold_hours,
                    "temperature": str(plan.cold_temperature),
                    "milestones": _milestones(plan, PhaseKind.COLD),
                },
            },
            "schedule": {
                "fermentationClass": schedule.fermentation_class.value,
                "totalHours": schedule.total_hours,
                "phases": [
                    {
                        "kind": p.kind.value,
                        "hours": p.duration_hours,
                        "temperature": str(p.temperature),
                        "description": p.description,
                        "milestones": list(p.milestones),
                    }
                    for p in schedule.phases
                ],
            },
            "weights": weights_body,
            "advancedOptions": {"preferment": False, "autolyse": plan.autolyse, "additionalIngredients": []},
        }
    )
    if plan.flour_mix is not None and plan.flour_mix.is_blend:
        body["recipe"] = {"flourMix": plan.flour_mix.model_dump(by_alias=True)}
    return body


class RecipeService:
    """Runs one calculation end to end.

    Args:
        cache: Two-tier analysis cache.
        gateway: Completion gateway.
        scheduler: Fermentation scheduler (custom rules from config).
        cache_ttl: Seconds an analysis stays cached.
        request_timeout: Overall deadline for the analysis half, in seconds.
        retry_after: Retry hint attached to 503 responses, in seconds.
    """

    def __init__(
        self,
        cache: LayeredCache,
        gateway: CompletionGateway,
        scheduler: FermentationScheduler,
        cache_ttl: int = 3600,
        request_timeout: float = 25,
        retry_after: int = 30,
    ) -> None:
        self.cache = cache
        self.gateway = gateway
        self.scheduler = scheduler
        self.cache_ttl = cache_ttl
        self.request_timeout = request_timeout
        self.retry_after = retry_after
        # Strong references keep abandoned tasks alive until they finish
        self._detached: set[asyncio.Task] = set()

    def build_plan(self, request: RecipeRequest) -> DoughPlan:
        return build_plan(request, self.scheduler)

    async def _cached_analysis(self, key: str) -> Optional[AnalysisResult]:
        cached = await self.cache.get(key)
        if cached is None:
            return None
        try:
            return AnalysisResult.model_validate(cached)
        except PydanticValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e.error_count()} error(s)")
            await self.cache.delete(key)
            return None

    async def _generate(self, plan: DoughPlan, key: Optional[str]) -> tuple[AnalysisResult, CacheStatus]:
        """Prompt, completion and repair; caches the result unless ``key`` is None."""
        prompt = build_analysis_prompt(plan)
        logger.debug(f"Prompt built ({len(prompt)} chars)")
        raw = await self.gateway.complete(prompt, get_system_instructions())

        analysis, used_fallback = ResponseRepairPipeline(plan).process(raw)
        if used_fallback:
            return analysis, CacheStatus.FALLBACK
        if key is None:
            return analysis, CacheStatus.BYPASS
        await self.cache.set(key, analysis.to_wire(), self.cache_ttl)
        return analysis, CacheStatus.MISS

    async def analyze(self, plan: DoughPlan, use_cache: bool = True) -> tuple[AnalysisResult, CacheStatus]:
        """Cache lookup, then generation on a miss. No deadline."""
        key = fingerprint(plan) if use_cache else None
        if key is not None:
            cached = await self._cached_analysis(key)
            if cached is not None:
                logger.info("✓ Analysis served from cache", extra={"cache_key": key})
                return cached, CacheStatus.HIT
        return await self._generate(plan, key)

    def _forget(self, task: asyncio.Task) -> None:
        self._detached.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Detached analysis failed after the deadline: {type(error).__name__}: {error}")
        else:
            logger.info("Detached analysis finished after the deadline")

    async def analyze_with_deadline(
        self, plan: DoughPlan, use_cache: bool = True
    ) -> tuple[AnalysisResult, CacheStatus]:
        """``analyze`` raced against ``request_timeout``.

        Raises:
            UpstreamTimeout: Deadline elapsed; the work continues detached.
            UpstreamError: Completion failed after retries.
            ConfigurationError: Cache miss without an API key.
        """
        task = asyncio.create_task(self.analyze(plan, use_cache))
        done, _ = await asyncio.wait({task}, timeout=self.request_timeout)
        if task not in done:
            self._detached.add(task)
            task.add_done_callback(self._forget)
            logger.warning(f"Request deadline of {format_number(self.request_timeout)}s elapsed, analysis detached")
            raise UpstreamTimeout(
                f"Analysis did not complete within {format_number(self.request_timeout)} seconds",
                retry_after=self.retry_after,
            )
        try:
            return task.result()
        except UpstreamError as e:
            if e.retry_after is None:
                e.retry_after = self.retry_after
            raise

    async def calculate(self, request: RecipeRequest, use_cache: bool = True) -> RecipeOutcome:
        """Full calculation for one request.

        Raises:
            ValidationError: Bad request (deterministic half fails early).
            UpstreamTimeout: Deadline elapsed.
            UpstreamError: Completion failed after retries.
            ConfigurationError: Cache miss without an API key.
        """
        plan = self.build_plan(request)
        logger.info(
            f"Plan: {plan.style_key}, {plan.dough_ball_count} x {format_number(plan.weight_per_ball)}g, "
            f"{plan.schedule.fermentation_class.value} ({format_number(plan.schedule.total_hours)}h), "
            f"room {plan.room_temperature}"
        )

        analysis, status = await self.analyze_with_deadline(plan, use_cache)
        if status == CacheStatus.FALLBACK:
            logger.warning("Returning defaulted analysis (not cached)")
        return RecipeOutcome(body=assemble_response(plan, analysis.to_wire()), cache_status=status)

    async def drain(self) -> None:
        """Wait for detached analyses (used at shutdown)."""
        if self._detached:
            await asyncio.gather(*self._detached, return_exceptions=True)
