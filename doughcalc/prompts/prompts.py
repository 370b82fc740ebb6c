"""Prompts for the dough analysis completion call.

Provides the system instruction and a builder that renders a DoughPlan into
the user prompt. Everything here is pure string formatting so it can be
tested by asserting on the generated text.

The model tends to convert Fahrenheit to Celsius mid-response, so the
literal temperatures are repeated throughout with an explicit instruction
to copy them verbatim.
"""

from doughcalc.engine.units import format_hours, format_number, format_weight
from doughcalc.models.analysis import default_timeline
from doughcalc.models.models import DoughPlan, FermentationClass, OvenType
from doughcalc.models.styles import OVEN_DESCRIPTIONS, get_style


SYSTEM_INSTRUCTIONS = """You are a pizza dough calculator API backed by an expert pizzaiolo. You MUST:
1. Return ONLY valid JSON
2. Follow the EXACT structure provided
3. Do not add ANY additional fields
4. Do not include ANY explanatory text outside the JSON
5. Ensure all JSON is properly formatted with no trailing commas
6. Use double quotes for all strings
7. Do not use any special characters that would need escaping
8. Keep all string values concise and focused
9. Copy every temperature exactly as given, including its unit. Never convert between Fahrenheit and Celsius."""


def get_system_instructions() -> str:
    return SYSTEM_INSTRUCTIONS


def _get_parameters_section(plan: DoughPlan) -> str:
    """Dough parameters exactly as calculated, including the literal temperatures."""
    if plan.flour_mix is not None and plan.flour_mix.is_blend:
        mix = plan.flour_mix
        flour_lines = (
            f"- Flour Mix:\n"
            f"  - Primary Flour: {mix.primary_type} ({format_number(mix.primary_percentage)}%)\n"
            f"  - Secondary Flour: {mix.secondary_type} ({format_number(mix.secondary_percentage)}%)"
        )
    elif plan.flour_mix is not None:
        flour_lines = f"- Flour: {plan.flour_mix.primary_type} (100%)"
    else:
        flour_lines = "- Flour: Standard bread flour (100%)"

    weights = plan.weights
    cold_line = f"\n- Cold Temperature: {plan.cold_temperature}" if plan.schedule.has_cold_phase else ""
    altitude_line = f"\n- Altitude: {format_number(plan.altitude)} m" if plan.altitude else ""
    return f"""Dough Parameters:
{flour_lines}
- Dough Balls: {plan.dough_ball_count} x {format_weight(plan.weight_per_ball)}
- Hydration: {format_number(plan.hydration)}%
- Salt: {format_number(plan.salt)}%
- Oil: {format_number(plan.oil)}%
- Yeast Type: {plan.yeast_type.value}
- Yeast Percentage: {format_number(plan.yeast_percentage)}%
- Fermentation Type: {plan.schedule.fermentation_class.value}
- Total Fermentation Hours: {format_number(plan.schedule.total_hours)}
- Room Temperature: {plan.room_temperature}{cold_line}
- Oven Type: {OVEN_DESCRIPTIONS[plan.oven_type]}
- Max Oven Temperature: {format_number(plan.max_oven_temp)}°F (oven figures stay in °F){altitude_line}

Calculated Weights:
- Flour: {format_weight(weights.flour_weight)}
- Water: {format_weight(weights.water_weight)}
- Salt: {format_weight(weights.salt_weight)}
- Yeast: {format_weight(weights.yeast_weight)}
- Oil: {format_weight(weights.oil_weight)}"""


def _get_style_section(plan: DoughPlan) -> str:
    style = get_style(plan.style_key)
    flours = ", ".join(f"{f.name} ({format_number(f.protein)}% protein): {f.description}" for f in style.flour_types)
    return f"""Style Information:
- Style: {style.name}
- Ideal Flour: {style.ideal_flour}
- Recommended Flours: {flours}
- Signature Characteristics: {", ".join(style.signature_characteristics)}"""


def _get_schema_section(plan: DoughPlan) -> str:
    """Exact JSON structure the response must follow."""
    room = str(plan.room_temperature)
    cold = str(plan.cold_temperature)
    mix = plan.flour_mix if plan.flour_mix is not None and plan.flour_mix.is_blend else None

    if mix:
        flours = f"""[
        {{"type": "{mix.primary_type}", "percentage": {format_number(mix.primary_percentage)}, "proteinContent": "protein content of {mix.primary_type}", "purpose": "role of {mix.primary_type} in this mix"}},
        {{"type": "{mix.secondary_type}", "percentage": {format_number(mix.secondary_percentage)}, "proteinContent": "protein content of {mix.secondary_type}", "purpose": "role of {mix.secondary_type} in this mix"}}
      ]"""
    else:
        flours = '[{"type": "flour type", "percentage": 100, "proteinContent": "protein content", "purpose": "purpose explanation"}]'

    oil_block = ""
    if plan.oil > 0:
        oil_block = f"""
    "oilAnalysis": {{
      "percentage": {format_number(plan.oil)},
      "rationale": "string explaining oil percentage choice",
      "impact": ["array of oil impact strings"]
    }},"""

    cold_block = ""
    cold_temperature_key = ""
    if plan.schedule.has_cold_phase:
        cold_block = f"""
      "coldTemp": {{
        "time": {format_number(plan.schedule.cold_hours)},
        "temperature": "{cold}",
        "impact": ["array of cold fermentation impact strings"]
      }},"""
        cold_temperature_key = f'\n      "coldTemperature": "{cold}",'

    return f"""Your response must be a valid JSON object with EXACTLY this structure:
{{
  "flourRecommendation": "string describing flour recommendation",
  "technicalAnalysis": "string with technical analysis",
  "adjustmentRationale": "string explaining adjustments",
  "techniqueGuidance": ["array of technique guidance strings"],
  "timeline": [
    {{
      "step": "string name of step",
      "time": "string exact time for step",
      "description": "string description of step",
      "temperature": "{room}",
      "tips": ["array of tip strings"]
    }}
  ],
  "detailedAnalysis": {{
    "flourAnalysis": {{
      "type": "string describing flour type",
      "proteinContent": "detailed protein content analysis",
      "rationale": "string explaining flour choice rationale",
      "flours": {flours},
      "alternatives": ["array of alternative flours"]
    }},
    "hydrationAnalysis": {{
      "percentage": {format_number(plan.hydration)},
      "rationale": "string explaining hydration choice",
      "impact": ["array of hydration impact strings"]
    }},
    "saltAnalysis": {{
      "percentage": {format_number(plan.salt)},
      "rationale": "string explaining salt percentage choice",
      "impact": ["array of salt impact strings"]
    }},{oil_block}
    "yeastAnalysis": {{
      "type": "{plan.yeast_type.value}",
      "percentage": {format_number(plan.yeast_percentage)},
      "rationale": "string explaining yeast quantity for this schedule",
      "impact": ["array of yeast impact strings"]
    }},
    "temperatureAnalysis": {{
      "roomTemperature": "{room}",{cold_temperature_key}
      "rationale": "string explaining how these temperatures shape fermentation",
      "impact": ["array of temperature impact strings"]
    }},
    "fermentationAnalysis": {{
      "totalTime": {format_number(plan.schedule.total_hours)},
      "roomTemp": {{
        "time": {format_number(plan.schedule.room_hours)},
        "temperature": "{room}",
        "impact": ["array of room temp fermentation impact strings"]
      }},{cold_block}
      "enzymaticActivity": "string describing enzyme activity",
      "gluten": "string describing gluten development"
    }},
    "ovenAnalysis": {{
      "ovenType": "{OVEN_DESCRIPTIONS[plan.oven_type]}",
      "maxTemp": {format_number(plan.max_oven_temp)},
      "recommendations": ["array of oven technique recommendations"],
      "impact": ["array of how oven type impacts dough formulation"]
    }}
  }}
}}"""


def _get_oven_section(plan: DoughPlan) -> str:
    max_temp = format_number(plan.max_oven_temp)
    if plan.oven_type == OvenType.OUTDOOR:
        return f"""Oven Analysis:
- Analyze how high-temperature wood/gas fired ovens ({max_temp}°F) impact dough formula
- Provide specific recommendations for outdoor pizza ovens
- Consider browning, cooking time, and hydration needs for high heat"""
    return f"""Oven Analysis:
- Analyze how standard home ovens ({max_temp}°F) impact dough formula
- Provide specific recommendations for baking in home ovens
- Consider par-baking needs, longer cooking times, and browning characteristics"""


# Schedule-specific guidance, keyed by fermentation class
_SCHEDULE_GUIDANCE: dict[FermentationClass, str] = {
    FermentationClass.QUICK: "Quick schedule: keep the dough warm and watch for over-proofing near the end.",
    FermentationClass.SAME_DAY: "Same-day schedule: a long room-temperature bulk does most of the work.",
    FermentationClass.OVERNIGHT: "Overnight schedule: a short room bulk, then the balls rest in the refrigerator.",
    FermentationClass.COLD: "Cold schedule: a brief room rest, then a multi-day cold fermentation for flavor.",
    FermentationClass.CUSTOM: "Custom schedule: follow the phase durations below exactly.",
}


def _get_timeline_section(plan: DoughPlan) -> str:
    """Concrete timeline skeleton built from the calculated phases."""
    skeleton = "\n".join(
        f"     {i}. {step['step']} ({step['time']}) at {step['temperature']}"
        for i, step in enumerate(default_timeline(plan), start=1)
    )
    phases = "\n".join(
        f"   - {p.kind.value}: {format_hours(p.duration_hours)} at {p.temperature}" for p in plan.schedule.phases
    )
    autolyse = (
        "\n   - Include an autolyse step before the initial mix"
        if plan.autolyse
        else "\n   - Do not include an autolyse step"
    )
    cold_rule = (
        f"\n   - Cold fermentation steps use \"{plan.cold_temperature}\" as temperature"
        if plan.schedule.has_cold_phase
        else "\n   - There is no cold fermentation; do not add refrigeration steps"
    )
    return f"""Important Timeline Guidelines:
1. For {plan.schedule.fermentation_class.value} fermentation ({format_number(plan.schedule.total_hours)} hours total):
   {_SCHEDULE_GUIDANCE[plan.schedule.fermentation_class]}
   Calculated phases:
{phases}
   - The timeline MUST include ALL steps in sequence:
{skeleton}
   - Time values must be exact (e.g., "2 hours" not "2-3 hours")
   - Total time must match {format_number(plan.schedule.total_hours)} hours{autolyse}

2. Temperature Requirements (copy literally, DO NOT convert units):
   - Room temperature steps use "{plan.room_temperature}" as temperature{cold_rule}
   - Every "temperature" value is a string exactly like "{plan.room_temperature}"
   - Never write the room temperature in any other unit than °{plan.unit.value}"""


def build_analysis_prompt(plan: DoughPlan) -> str:
    """Render the user prompt for one dough plan.

    Args:
        plan: Deterministic baseline (weights, schedule, literal temperatures).

    Returns:
        str: Prompt embedding the parameters, style guidance, exact JSON
        structure, timeline skeleton and oven guidance.
    """
    style = get_style(plan.style_key)
    return f"""As an expert pizzaiolo, analyze and provide detailed recommendations for a {style.name} style pizza dough with the following specifications.

The room temperature is {plan.room_temperature}. Use {plan.room_temperature} exactly as written: DO NOT convert it to another unit.

{_get_parameters_section(plan)}

{_get_style_section(plan)}

{_get_schema_section(plan)}

{_get_timeline_section(plan)}

{_get_oven_section(plan)}

Reminder: the room temperature is {plan.room_temperature}. Repeat it verbatim wherever a room temperature appears."""
