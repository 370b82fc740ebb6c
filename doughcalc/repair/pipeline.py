"""Response repair pipeline: raw model text in, fully shaped AnalysisResult out.

Stages, in order:

1. Extraction: text from the first ``{`` to the last ``}`` (to the end when
   the output was cut off before any closing brace).
2. Temperature normalization on the raw text.
3. Structural repair: control characters, single-quoted keys, bracket
   balancing, then trailing commas and dangling keys.
4. Parse.
5. Literal enforcement: temperatures, percentages and times from the plan.
6. Schema completion against the canonical defaults.

Stages 1-4 raise ``NoJsonFound`` / ``UnrepairableResponse``. Stages 5-6
never fail. ``process`` wraps everything and falls back to the fully
defaulted analysis so a broken answer never blocks the numeric recipe.
"""

import copy
import json
import re
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from doughcalc.models.analysis import (
    TIMELINE_STEPS,
    AnalysisResult,
    default_analysis,
    default_flour_recommendation,
    default_technical_analysis,
    default_timeline,
    default_timeline_step,
    timeline_rank,
)
from doughcalc.models.models import DoughPlan
from doughcalc.repair.balancer import balance, string_mask
from doughcalc.repair.temperatures import normalize_temperatures
from doughcalc.utils.errors import NoJsonFound, ResponseRepairFailure, UnrepairableResponse
from doughcalc.utils.logger import logger


MIN_TIMELINE_STEPS = 4
MIN_TECHNICAL_ANALYSIS_CHARS = 20

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SINGLE_QUOTED_KEY = re.compile(r"(?<=[{,\s])'([A-Za-z_][\w]*)'(\s*:)")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_DANGLING_KEY = re.compile(r',?\s*"[^"\\]*"\s*:\s*(?=[}\]])')

_DECODER = json.JSONDecoder(strict=False)
_COLD_RANK = [name for name, _ in TIMELINE_STEPS].index("Cold fermentation")


def _starts_in_string(mask: bytearray, text: str, index: int) -> bool:
    """True when ``index`` is inside a string literal; an opening quote counts as outside."""
    if not mask[index]:
        return False
    opening_quote = text[index] == '"' and (index == 0 or not mask[index - 1])
    return not opening_quote


def _sub_outside_strings(pattern: re.Pattern, replacement, text: str) -> str:
    """``pattern.sub`` restricted to matches that start outside string literals."""
    mask = string_mask(text)

    def _replace(match: re.Match) -> str:
        if _starts_in_string(mask, text, match.start()):
            return match.group()
        return match.expand(replacement) if isinstance(replacement, str) else replacement(match)

    return pattern.sub(_replace, text)


# ============================================================================
# Stages 1-4
# ============================================================================


def extract_json(raw: str) -> str:
    """Stage 1: the candidate JSON span.

    Raises:
        NoJsonFound: No ``{`` in the text.
    """
    start = raw.find("{")
    if start == -1:
        raise NoJsonFound("No JSON object found in model output")
    end = raw.rfind("}")
    if end < start:
        # Truncated before any closing brace: let the balancer close it
        return raw[start:]
    return raw[start:end + 1]


def repair_structure(text: str) -> str:
    """Stage 3: syntax cleanup around the bracket balancer."""
    text = _CONTROL_CHARS.sub("", text)
    text = _sub_outside_strings(_SINGLE_QUOTED_KEY, r'"\1"\2', text)
    text, edits = balance(text)
    if edits:
        logger.debug(f"Structural repair applied {len(edits)} edit(s): {[e.kind.value for e in edits]}")
    # Dangling keys first: removing one can expose a trailing comma
    text = _sub_outside_strings(_DANGLING_KEY, "", text)
    text = _sub_outside_strings(_TRAILING_COMMA, r"\1", text)
    return text


def parse_json(text: str) -> dict[str, Any]:
    """Stage 4.

    Raises:
        UnrepairableResponse: The text still is not a JSON object.
    """
    try:
        parsed, _ = _DECODER.raw_decode(text)
    except json.JSONDecodeError as e:
        raise UnrepairableResponse(f"Model output is not valid JSON after repair: {e}") from e
    if not isinstance(parsed, dict):
        raise UnrepairableResponse(f"Model output is a JSON {type(parsed).__name__}, not an object")
    return parsed


# ============================================================================
# Stage 5: literal enforcement
# ============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_cold_step(node: dict[str, Any]) -> bool:
    label = node.get("step")
    if not isinstance(label, str):
        label = node.get("description")
    return isinstance(label, str) and timeline_rank(label) == _COLD_RANK


def enforce_literals(data: Any, plan: DoughPlan) -> Any:
    """Stage 5: force temperatures and plan figures to their literal values.

    Every ``temperature`` becomes the room literal, or the cold literal under
    ``coldTemp`` and in refrigerated steps; numeric ``roomTemp`` becomes the
    request's room value; free text gets temperature tokens normalized.
    Returns a new structure.
    """
    room = plan.room_temperature
    cold = plan.cold_temperature
    has_cold = plan.schedule.has_cold_phase

    def walk(node: Any, cold_context: bool) -> Any:
        if isinstance(node, dict):
            in_cold = has_cold and (cold_context or _is_cold_step(node))
            result = {}
            for key, value in node.items():
                if key == "temperature" and not isinstance(value, (dict, list)):
                    result[key] = str(cold if in_cold else room)
                elif key == "roomTemp" and _is_number(value):
                    result[key] = room.number
                elif key == "roomTemperature" and not isinstance(value, (dict, list)):
                    result[key] = str(room)
                elif key == "coldTemperature" and not isinstance(value, (dict, list)):
                    result[key] = str(cold)
                elif key == "roomTemp":
                    result[key] = walk(value, False)
                elif key == "coldTemp":
                    result[key] = walk(value, True)
                else:
                    result[key] = walk(value, in_cold)
            return result
        if isinstance(node, list):
            return [walk(item, cold_context) for item in node]
        if isinstance(node, str):
            return normalize_temperatures(node, room, cold, json_text=False)
        return node

    enforced = walk(data, False)
    _enforce_plan_figures(enforced, plan)
    return enforced


def _enforce_plan_figures(data: dict[str, Any], plan: DoughPlan) -> None:
    """Percentages, times and oven limit always come from the plan, not the model."""
    detailed = data.get("detailedAnalysis")
    if not isinstance(detailed, dict):
        return

    for key, value in (
        ("hydrationAnalysis", plan.hydration),
        ("saltAnalysis", plan.salt),
        ("oilAnalysis", plan.oil),
        ("yeastAnalysis", plan.yeast_percentage),
    ):
        section = detailed.get(key)
        if isinstance(section, dict):
            section["percentage"] = value
    yeast = detailed.get("yeastAnalysis")
    if isinstance(yeast, dict):
        yeast["type"] = plan.yeast_type.value

    fermentation = detailed.get("fermentationAnalysis")
    if isinstance(fermentation, dict):
        fermentation["totalTime"] = plan.schedule.total_hours
        if isinstance(fermentation.get("roomTemp"), dict):
            fermentation["roomTemp"]["time"] = plan.schedule.room_hours
        if isinstance(fermentation.get("coldTemp"), dict):
            fermentation["coldTemp"]["time"] = plan.schedule.cold_hours

    oven = detailed.get("ovenAnalysis")
    if isinstance(oven, dict):
        oven["maxTemp"] = plan.max_oven_temp

    flour = detailed.get("flourAnalysis")
    mix = plan.flour_mix
    if isinstance(flour, dict) and isinstance(flour.get("flours"), list) and mix is not None and mix.is_blend:
        shares = [mix.primary_percentage, mix.secondary_percentage]
        entries = [entry for entry in flour["flours"] if isinstance(entry, dict)]
        for entry, share in zip(entries, shares):
            entry["percentage"] = share


# ============================================================================
# Stage 6: schema completion
# ============================================================================


def _merge(value: Any, default: Any) -> Any:
    """Merge model output over a default, keeping the default's types.

    Dicts merge key by key and keep extra keys from the model. Lists of
    strings keep the model's string items (default when none remain).
    Scalars keep the model's value only when it has the default's type.
    """
    if isinstance(default, dict):
        if not isinstance(value, dict):
            return copy.deepcopy(default)
        merged = dict(value)
        for key, default_value in default.items():
            merged[key] = _merge(value.get(key), default_value)
        return merged
    if isinstance(default, list):
        if not isinstance(value, list):
            return copy.deepcopy(default)
        if default and isinstance(default[0], dict):
            items = [_merge(item, default[0]) for item in value if isinstance(item, dict)]
        else:
            items = [item for item in value if isinstance(item, str) and item.strip()]
        return items or copy.deepcopy(default)
    if isinstance(default, bool):
        return value if isinstance(value, bool) else default
    if _is_number(default):
        return value if _is_number(value) else default
    if isinstance(default, str):
        return value if isinstance(value, str) and value.strip() else default
    return value if value is not None else default


def _complete_timeline(value: Any, plan: DoughPlan) -> list[dict[str, Any]]:
    """Merge model steps over canonical ones and top up short timelines."""
    if not isinstance(value, list):
        return default_timeline(plan)

    names = [name for name, _ in TIMELINE_STEPS]
    steps = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("step"), str) or not item["step"].strip():
            continue
        rank = timeline_rank(item["step"])
        template = default_timeline_step(names[rank] if rank < len(names) else "Ready to use", plan)
        template["step"] = item["step"]
        template["tips"] = []
        merged = _merge(item, template)
        if not isinstance(item.get("tips"), list):
            merged["tips"] = []
        steps.append(merged)

    if not steps:
        return default_timeline(plan)

    if len(steps) < MIN_TIMELINE_STEPS:
        present = {min(timeline_rank(step["step"]), len(names)) for step in steps}
        for canonical in default_timeline(plan):
            if timeline_rank(canonical["step"]) not in present:
                steps.append(canonical)
        steps.sort(key=lambda step: timeline_rank(step["step"]))
        logger.debug(f"Timeline completed to {len(steps)} steps")

    return steps


def complete_schema(data: dict[str, Any], plan: DoughPlan) -> AnalysisResult:
    """Stage 6: a fully shaped AnalysisResult, defaults filling every gap."""
    defaults = default_analysis(plan)
    merged = _merge(data, defaults)
    merged["timeline"] = _complete_timeline(data.get("timeline"), plan)

    detailed = merged["detailedAnalysis"]
    if plan.oil <= 0:
        detailed.pop("oilAnalysis", None)
    if not plan.schedule.has_cold_phase:
        detailed["fermentationAnalysis"].pop("coldTemp", None)
        detailed["temperatureAnalysis"].pop("coldTemperature", None)

    recommendation = merged["flourRecommendation"]
    if "standard flour" in recommendation.lower():
        merged["flourRecommendation"] = default_flour_recommendation(plan)
    if len(merged["technicalAnalysis"].strip()) < MIN_TECHNICAL_ANALYSIS_CHARS:
        merged["technicalAnalysis"] = default_technical_analysis(plan)

    try:
        return AnalysisResult.model_validate(merged)
    except PydanticValidationError as e:
        logger.warning(f"Completed analysis failed validation, using defaults: {e.error_count()} error(s)")
        return AnalysisResult.model_validate(defaults)


# ============================================================================
# Pipeline
# ============================================================================


class ResponseRepairPipeline:
    """Turns raw completion text into an AnalysisResult for one plan."""

    def __init__(self, plan: DoughPlan) -> None:
        self.plan = plan

    def repair(self, raw: str) -> AnalysisResult:
        """Run all six stages.

        Raises:
            NoJsonFound: Stage 1 found no JSON object start.
            UnrepairableResponse: Stage 4 could not parse the repaired text.
        """
        text = extract_json(raw)
        text = normalize_temperatures(text, self.plan.room_temperature, self.plan.cold_temperature)
        text = repair_structure(text)
        parsed = parse_json(text)
        enforced = enforce_literals(parsed, self.plan)
        return complete_schema(enforced, self.plan)

    def fallback(self) -> AnalysisResult:
        return AnalysisResult.model_validate(default_analysis(self.plan))

    def process(self, raw: Optional[str]) -> tuple[AnalysisResult, bool]:
        """Repair ``raw``; never raises.

        Returns:
            (analysis, used_fallback). ``used_fallback`` is True when the
            defaulted analysis replaced unusable model output.
        """
        if raw is None:
            return self.fallback(), True
        try:
            return self.repair(raw), False
        except ResponseRepairFailure as e:
            logger.warning(f"Response repair failed ({type(e).__name__}): {e}. Using defaulted analysis")
            return self.fallback(), True
