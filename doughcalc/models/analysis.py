"""AnalysisResult schema and its canonical default constructors.

The narrative half of a calculation comes from the completion service and
is frequently incomplete. Every section therefore has exactly one
``default_*`` function building a schema-consistent replacement from the
deterministic plan; the repair pipeline merges model output over these.
Defaults are plain camelCase dicts, the wire shape of the response.
"""

import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from doughcalc.engine.units import format_hours, format_number
from doughcalc.models.models import DoughPlan, OvenType, PhaseKind
from doughcalc.models.styles import (
    DEFAULT_PROTEIN_RANGE,
    OVEN_DESCRIPTIONS,
    PizzaStyle,
    get_style,
    protein_range_for,
)


ANALYSIS_PENDING = "Detailed analysis pending."

_PROTEIN_PATTERN = re.compile(r"(\d+(?:\.\d+)?(?:\s*-\s*\d+(?:\.\d+)?)?%)\s*protein", re.IGNORECASE)


class _AnalysisModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class FlourEntry(_AnalysisModel):
    type: str
    percentage: float
    protein_content: str
    purpose: str


class FlourAnalysis(_AnalysisModel):
    type: str
    protein_content: str
    rationale: str
    flours: List[FlourEntry]
    alternatives: List[str] = Field(default_factory=list)


class IngredientAnalysis(_AnalysisModel):
    percentage: float
    rationale: str
    impact: List[str]


class YeastAnalysis(_AnalysisModel):
    type: str
    percentage: float
    rationale: str
    impact: List[str]


class TemperatureAnalysis(_AnalysisModel):
    room_temperature: str
    cold_temperature: Optional[str] = None
    rationale: str
    impact: List[str]


class PhaseAnalysis(_AnalysisModel):
    time: float
    temperature: str
    impact: List[str]


class FermentationAnalysis(_AnalysisModel):
    total_time: float
    room_temp: PhaseAnalysis
    cold_temp: Optional[PhaseAnalysis] = None
    enzymatic_activity: str
    gluten: str


class OvenAnalysis(_AnalysisModel):
    oven_type: str
    max_temp: float
    recommendations: List[str]
    impact: List[str]


class DetailedAnalysis(_AnalysisModel):
    flour_analysis: FlourAnalysis
    hydration_analysis: IngredientAnalysis
    salt_analysis: IngredientAnalysis
    oil_analysis: Optional[IngredientAnalysis] = None
    yeast_analysis: YeastAnalysis
    temperature_analysis: TemperatureAnalysis
    fermentation_analysis: FermentationAnalysis
    oven_analysis: OvenAnalysis


class TimelineStep(_AnalysisModel):
    step: str
    time: str
    description: str
    temperature: str
    tips: List[str] = Field(default_factory=list)


class AnalysisResult(_AnalysisModel):
    """Narrative analysis returned with every calculation; always fully shaped."""

    flour_recommendation: str
    technical_analysis: str
    adjustment_rationale: str
    technique_guidance: List[str]
    timeline: List[TimelineStep]
    detailed_analysis: DetailedAnalysis

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Canonical timeline order: (step name, keywords that identify the step)
TIMELINE_STEPS: list[tuple[str, tuple[str, ...]]] = [
    ("Autolyse", ("autolyse",)),
    ("Initial mix", ("mix", "combine")),
    ("First rest", ("rest",)),
    ("Kneading", ("knead",)),
    ("Bulk fermentation", ("bulk", "first rise")),
    ("Divide and ball", ("divide", "ball", "shape")),
    ("Cold fermentation", ("cold", "refrigerat", "fridge")),
    ("Final proof", ("proof",)),
    ("Ready to use", ("ready", "bake")),
]


def timeline_rank(step_name: str) -> int:
    """Position of a step in the canonical order; unknown steps sort last."""
    lowered = step_name.lower()
    # Later keywords win ties so "cold bulk" ranks as cold, "final proof after rest" as proof
    for rank in range(len(TIMELINE_STEPS) - 1, -1, -1):
        if any(keyword in lowered for keyword in TIMELINE_STEPS[rank][1]):
            return rank
    return len(TIMELINE_STEPS)


def _style(plan: DoughPlan) -> PizzaStyle:
    style = get_style(plan.style_key)
    if style is None:
        raise KeyError(f"Unknown style: {plan.style_key}")
    return style


def _pending(sentence: str) -> str:
    return f"{ANALYSIS_PENDING} {sentence}"


def ideal_flour_protein(style: PizzaStyle) -> str:
    match = _PROTEIN_PATTERN.search(style.ideal_flour)
    return match.group(1).replace(" ", "") if match else DEFAULT_PROTEIN_RANGE


def default_flour_recommendation(plan: DoughPlan) -> str:
    style = _style(plan)
    if plan.flour_mix is not None and plan.flour_mix.is_blend:
        mix = plan.flour_mix
        return (
            f"A blend of {format_number(mix.primary_percentage)}% {mix.primary_type} and "
            f"{format_number(mix.secondary_percentage)}% {mix.secondary_type} for {style.name} style pizza."
        )
    return f"For {style.name} style pizza, use {style.ideal_flour}."


def default_technical_analysis(plan: DoughPlan) -> str:
    style = _style(plan)
    if plan.flour_mix is not None and plan.flour_mix.is_blend:
        mix = plan.flour_mix
        return (
            f"{mix.primary_type} ({protein_range_for(mix.primary_type)} protein) provides the main gluten "
            f"structure while {mix.secondary_type} ({protein_range_for(mix.secondary_type)} protein) "
            f"adjusts extensibility and flavor at {format_number(plan.hydration)}% hydration."
        )
    return (
        f"{style.name} dough at {format_number(plan.hydration)}% hydration needs flour with "
        f"{ideal_flour_protein(style)} protein to build enough gluten for "
        f"{format_number(plan.schedule.total_hours)} hours of fermentation."
    )


def default_flour_analysis(plan: DoughPlan) -> dict[str, Any]:
    style = _style(plan)
    alternatives = [f"{f.name} ({format_number(f.protein)}% protein)" for f in style.flour_types[:2]]
    if plan.flour_mix is not None and plan.flour_mix.is_blend:
        mix = plan.flour_mix
        flours = [
            {
                "type": mix.primary_type,
                "percentage": mix.primary_percentage,
                "proteinContent": protein_range_for(mix.primary_type),
                "purpose": "Primary flour providing the main gluten structure",
            },
            {
                "type": mix.secondary_type,
                "percentage": mix.secondary_percentage,
                "proteinContent": protein_range_for(mix.secondary_type),
                "purpose": "Secondary flour adjusting texture and flavor",
            },
        ]
        return {
            "type": f"Custom mix of {mix.primary_type} and {mix.secondary_type}",
            "proteinContent": f"{protein_range_for(mix.primary_type)} / {protein_range_for(mix.secondary_type)}",
            "rationale": _pending(f"{style.name} style pizza typically requires {style.ideal_flour}."),
            "flours": flours,
            "alternatives": alternatives,
        }

    flour_type = plan.flour_mix.primary_type if plan.flour_mix is not None else style.ideal_flour
    protein = protein_range_for(flour_type) if plan.flour_mix is not None else ideal_flour_protein(style)
    return {
        "type": flour_type,
        "proteinContent": protein,
        "rationale": _pending(f"{style.name} style pizza typically requires {style.ideal_flour}."),
        "flours": [
            {
                "type": flour_type,
                "percentage": 100,
                "proteinContent": protein,
                "purpose": f"Base flour for {style.name} dough",
            }
        ],
        "alternatives": alternatives,
    }


def default_hydration_analysis(plan: DoughPlan) -> dict[str, Any]:
    style = _style(plan)
    low, high = style.hydration_range
    return {
        "percentage": plan.hydration,
        "rationale": _pending(
            f"{style.name} dough is usually {format_number(low)}-{format_number(high)}% hydration; "
            f"this recipe uses {format_number(plan.hydration)}%."
        ),
        "impact": ["Higher hydration gives a more open crumb", "Lower hydration makes the dough easier to handle"],
    }


def default_salt_analysis(plan: DoughPlan) -> dict[str, Any]:
    style = _style(plan)
    low, high = style.salt_range
    return {
        "percentage": plan.salt,
        "rationale": _pending(
            f"{style.name} dough usually takes {format_number(low)}-{format_number(high)}% salt; "
            f"this recipe uses {format_number(plan.salt)}%."
        ),
        "impact": ["Salt tightens the gluten network", "Salt slows yeast activity and seasons the crust"],
    }


def default_oil_analysis(plan: DoughPlan) -> dict[str, Any]:
    return {
        "percentage": plan.oil,
        "rationale": _pending(f"{format_number(plan.oil)}% oil softens the crumb and helps browning."),
        "impact": ["Oil tenderizes the crumb", "Oil promotes browning at lower oven temperatures"],
    }


def default_yeast_analysis(plan: DoughPlan) -> dict[str, Any]:
    return {
        "type": plan.yeast_type.value,
        "percentage": plan.yeast_percentage,
        "rationale": _pending(
            f"{format_number(plan.yeast_percentage)}% {plan.yeast_type.value} yeast matches "
            f"{format_number(plan.schedule.total_hours)} hours of fermentation at {plan.room_temperature}."
        ),
        "impact": ["Less yeast over a longer fermentation builds more flavor", "Too much yeast risks over-proofing"],
    }


def default_temperature_analysis(plan: DoughPlan) -> dict[str, Any]:
    analysis = {
        "roomTemperature": str(plan.room_temperature),
        "rationale": _pending(f"Room phases run at {plan.room_temperature}."),
        "impact": ["Warmer dough ferments faster", "Stable temperatures give predictable timing"],
    }
    if plan.schedule.has_cold_phase:
        analysis["coldTemperature"] = str(plan.cold_temperature)
        analysis["rationale"] = _pending(
            f"Room phases run at {plan.room_temperature} and the cold phase at {plan.cold_temperature}."
        )
    return analysis


def default_room_phase(plan: DoughPlan) -> dict[str, Any]:
    return {
        "time": plan.schedule.room_hours,
        "temperature": str(plan.room_temperature),
        "impact": ["Active yeast fermentation", "Gluten relaxes and gas builds"],
    }


def default_cold_phase(plan: DoughPlan) -> dict[str, Any]:
    return {
        "time": plan.schedule.cold_hours,
        "temperature": str(plan.cold_temperature),
        "impact": ["Slower, more controlled fermentation", "Enhanced flavor development"],
    }


def default_fermentation_analysis(plan: DoughPlan) -> dict[str, Any]:
    analysis = {
        "totalTime": plan.schedule.total_hours,
        "roomTemp": default_room_phase(plan),
        "enzymaticActivity": _pending("Enzymes break starch into sugars that feed yeast and color the crust."),
        "gluten": _pending("Gluten strengthens through mixing and relaxes during fermentation."),
    }
    if plan.schedule.has_cold_phase:
        analysis["coldTemp"] = default_cold_phase(plan)
    return analysis


def default_oven_analysis(plan: DoughPlan) -> dict[str, Any]:
    if plan.oven_type == OvenType.OUTDOOR:
        recommendations = [
            "Launch when the deck is fully heated",
            "Turn the pizza every 20-30 seconds for even charring",
        ]
        impact = ["Bakes in 60-90 seconds", "High heat favors lower oil and sugar"]
    else:
        recommendations = [
            "Preheat a steel or stone for at least 45 minutes at maximum temperature",
            "Bake on the upper rack and finish under the broiler if needed",
        ]
        impact = ["Longer bake dries the crust", "Oil or sugar helps browning at lower temperatures"]
    return {
        "ovenType": OVEN_DESCRIPTIONS[plan.oven_type],
        "maxTemp": plan.max_oven_temp,
        "recommendations": recommendations,
        "impact": impact,
    }


def default_timeline_step(name: str, plan: DoughPlan) -> dict[str, Any]:
    """Canonical step for a timeline name from TIMELINE_STEPS."""
    room = str(plan.room_temperature)
    phase_hours = {p.kind: p.duration_hours for p in plan.schedule.phases}
    steps = {
        "Autolyse": ("30 minutes", "Mix flour and water only and let it rest before adding salt and yeast", room),
        "Initial mix": ("10 minutes", "Combine flour, water, salt and yeast until no dry flour remains", room),
        "First rest": ("15 minutes", "Cover and rest so the flour fully hydrates", room),
        "Kneading": ("5 minutes", "Knead until smooth and elastic", room),
        "Bulk fermentation": (
            format_hours(phase_hours.get(PhaseKind.BULK, 0)),
            "Let the dough rise covered at room temperature",
            room,
        ),
        "Divide and ball": ("30 minutes", "Divide into equal pieces and shape tight balls", room),
        "Cold fermentation": (
            format_hours(phase_hours.get(PhaseKind.COLD, 0)),
            "Refrigerate the dough balls in sealed containers",
            str(plan.cold_temperature),
        ),
        "Final proof": (
            format_hours(phase_hours.get(PhaseKind.PROOF, 0)),
            "Proof the balls covered at room temperature until relaxed and puffy",
            room,
        ),
        "Ready to use": ("0 minutes", "Stretch, top and bake", room),
    }
    time, description, temperature = steps[name]
    return {"step": name, "time": time, "description": description, "temperature": temperature, "tips": []}


def default_timeline(plan: DoughPlan) -> list[dict[str, Any]]:
    names = [name for name, _ in TIMELINE_STEPS]
    if not plan.autolyse:
        names.remove("Autolyse")
    if not plan.schedule.has_cold_phase:
        names.remove("Cold fermentation")
    return [default_timeline_step(name, plan) for name in names]


def default_technique_guidance(plan: DoughPlan) -> list[str]:
    guidance = [
        "Weigh every ingredient, including water and yeast",
        f"Keep the dough at {plan.room_temperature} during room-temperature phases",
    ]
    if plan.schedule.has_cold_phase:
        guidance.append(
            f"Refrigerate at {plan.cold_temperature} and let the balls warm up during the final proof"
        )
    if plan.hydration >= 70:
        guidance.append("Use wet hands and stretch-and-folds instead of heavy kneading")
    return guidance


def default_detailed_analysis(plan: DoughPlan) -> dict[str, Any]:
    detailed = {
        "flourAnalysis": default_flour_analysis(plan),
        "hydrationAnalysis": default_hydration_analysis(plan),
        "saltAnalysis": default_salt_analysis(plan),
        "yeastAnalysis": default_yeast_analysis(plan),
        "temperatureAnalysis": default_temperature_analysis(plan),
        "fermentationAnalysis": default_fermentation_analysis(plan),
        "ovenAnalysis": default_oven_analysis(plan),
    }
    if plan.oil > 0:
        detailed["oilAnalysis"] = default_oil_analysis(plan)
    return detailed


def default_analysis(plan: DoughPlan) -> dict[str, Any]:
    """Fully defaulted analysis used when the model output is unusable."""
    return {
        "flourRecommendation": default_flour_recommendation(plan),
        "technicalAnalysis": default_technical_analysis(plan),
        "adjustmentRationale": _pending("The recipe uses the requested parameters without adjustment."),
        "techniqueGuidance": default_technique_guidance(plan),
        "timeline": default_timeline(plan),
        "detailedAnalysis": default_detailed_analysis(plan),
    }
