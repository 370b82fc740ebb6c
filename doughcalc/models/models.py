"""Data models and schemas for the dough calculator service.

Defines Pydantic models for request validation and the immutable value
objects the engine derives from a request (schedule, weights, plan).
Request models accept the camelCase field names the calculator UI sends.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class FermentationClass(str, Enum):
    QUICK = "quick"
    SAME_DAY = "same-day"
    OVERNIGHT = "overnight"
    COLD = "cold"
    CUSTOM = "custom"


class YeastType(str, Enum):
    FRESH = "fresh"
    ACTIVE_DRY = "active-dry"
    INSTANT = "instant"


class OvenType(str, Enum):
    HOME = "home"
    OUTDOOR = "outdoor"


class TemperatureUnit(str, Enum):
    FAHRENHEIT = "F"
    CELSIUS = "C"


class PhaseKind(str, Enum):
    MIX = "mix"
    BULK = "bulk"
    BALL = "ball"
    COLD = "cold"
    PROOF = "proof"


# Spellings the calculator UI and older clients send for yeast types
_YEAST_ALIASES = {
    "fresh": YeastType.FRESH,
    "fresh-yeast": YeastType.FRESH,
    "cake": YeastType.FRESH,
    "active-dry": YeastType.ACTIVE_DRY,
    "activedry": YeastType.ACTIVE_DRY,
    "active": YeastType.ACTIVE_DRY,
    "ady": YeastType.ACTIVE_DRY,
    "instant": YeastType.INSTANT,
    "instant-dry": YeastType.INSTANT,
    "idy": YeastType.INSTANT,
}


class _RequestModel(BaseModel):
    """Base for request models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ============================================================================
# Request
# ============================================================================


class FlourMix(_RequestModel):
    """Optional two-component flour blend."""

    primary_type: Annotated[str, Field(min_length=1, max_length=100)]
    secondary_type: Annotated[Optional[str], Field(None, max_length=100)]
    primary_percentage: Annotated[float, Field(100.0, ge=0, le=100)]

    @field_validator("secondary_type", mode="before")
    @classmethod
    def blank_secondary_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def single_flour_is_whole(self) -> "FlourMix":
        """Without a secondary flour the primary flour is the whole flour weight."""
        if self.secondary_type is None:
            self.primary_percentage = 100.0
        return self

    @property
    def secondary_percentage(self) -> float:
        return 100.0 - self.primary_percentage if self.secondary_type else 0.0

    @property
    def is_blend(self) -> bool:
        return self.secondary_type is not None


class YeastSpec(_RequestModel):
    type: YeastType = YeastType.INSTANT

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if v is None or v == "":
            return YeastType.INSTANT
        if isinstance(v, YeastType):
            return v
        key = str(v).strip().lower().replace("_", "-").replace(" ", "-")
        if key not in _YEAST_ALIASES:
            raise ValueError(f"Unknown yeast type: {v}")
        return _YEAST_ALIASES[key]


class RecipeParams(_RequestModel):
    """Recipe sub-object: percentages are baker's percentages (65 means 65% of flour)."""

    hydration: Annotated[Optional[float], Field(None, ge=0, le=150)]
    salt: Annotated[Optional[float], Field(None, ge=0, le=20)]
    oil: Annotated[Optional[float], Field(None, ge=0, le=30)]
    flour_mix: Optional[FlourMix] = None
    fermentation_class: Annotated[
        FermentationClass,
        Field(
            FermentationClass.SAME_DAY,
            validation_alias=AliasChoices(
                "fermentationClass", "fermentationTime", "fermentation_class", "fermentation_time"
            ),
        ),
    ]
    yeast: YeastSpec = Field(default_factory=YeastSpec)

    @field_validator("yeast", mode="before")
    @classmethod
    def yeast_as_string(cls, v):
        # Older clients send "yeast": "instant"
        if isinstance(v, str):
            return {"type": v}
        if v is None:
            return {}
        return v


class FermentationTemperatures(_RequestModel):
    room: Optional[float] = None
    cold: Optional[float] = None


class FermentationDuration(_RequestModel):
    min: Annotated[Optional[float], Field(None, ge=0)]
    max: Annotated[Optional[float], Field(None, ge=0)]


class FermentationParams(_RequestModel):
    schedule: Optional[str] = None
    temperature: FermentationTemperatures = Field(default_factory=FermentationTemperatures)
    duration: Optional[FermentationDuration] = None
    target_date: Optional[datetime] = None


class RoomTemperature(_RequestModel):
    value: float
    unit: TemperatureUnit = TemperatureUnit.FAHRENHEIT

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        if isinstance(v, str):
            return v.strip().upper().lstrip("°")[:1]
        return v


class Environment(_RequestModel):
    room_temperature: Optional[RoomTemperature] = None
    oven_type: OvenType = OvenType.HOME
    altitude: Annotated[Optional[float], Field(None, ge=0, le=6000)]
    # Always °F, whatever the dough temperature unit
    max_oven_temp: Annotated[
        Optional[float], Field(None, gt=0, le=1200, description="Maximum oven temperature in °F")
    ]


class AnalysisPreferences(_RequestModel):
    include_autolyse: bool = False
    skip_autolyse: bool = False

    @property
    def autolyse(self) -> bool:
        return self.include_autolyse and not self.skip_autolyse


class RecipeRequest(_RequestModel):
    """Input schema for a dough calculation.

    Style must name an entry of the style catalog; unknown styles are
    rejected by the service (400) rather than here, so the message can list
    the known styles.
    """

    style: Annotated[str, Field(min_length=1, max_length=50)]
    dough_ball_count: Annotated[
        int,
        Field(
            gt=0,
            le=1000,
            validation_alias=AliasChoices("doughBallCount", "doughBalls", "dough_ball_count"),
        ),
    ]
    weight_per_ball: Annotated[float, Field(gt=0, le=5000)]
    recipe: RecipeParams
    fermentation: FermentationParams
    environment: Environment = Field(default_factory=Environment)
    analysis_preferences: AnalysisPreferences = Field(default_factory=AnalysisPreferences)

    @field_validator("style", mode="before")
    @classmethod
    def normalize_style(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace(" ", "-").replace("_", "-")
        return v

    @property
    def unit(self) -> TemperatureUnit:
        if self.environment.room_temperature is not None:
            return self.environment.room_temperature.unit
        return TemperatureUnit.FAHRENHEIT

    @property
    def total_dough_weight(self) -> float:
        return self.dough_ball_count * self.weight_per_ball


# ============================================================================
# Engine value objects
# ============================================================================


class TemperatureLiteral(BaseModel):
    """A temperature exactly as it must appear in output, e.g. ``75°F``.

    Never produced by converting another literal: room and cold values are
    fixed constants per unit, or the value the caller sent.
    """

    model_config = ConfigDict(frozen=True)

    value: float
    unit: TemperatureUnit

    @property
    def number(self) -> int | float:
        return int(self.value) if float(self.value).is_integer() else self.value

    def __str__(self) -> str:
        return f"{self.number}°{self.unit.value}"


class Phase(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PhaseKind
    temperature: TemperatureLiteral
    duration_hours: Annotated[float, Field(ge=0)]
    description: str
    milestones: tuple[str, ...] = ()


class FermentationSchedule(BaseModel):
    """Ordered, contiguous phases: mix, bulk, ball, optional cold, proof."""

    model_config = ConfigDict(frozen=True)

    fermentation_class: FermentationClass
    total_hours: float
    phases: tuple[Phase, ...]
    room_temperature: TemperatureLiteral
    cold_temperature: TemperatureLiteral

    @property
    def has_cold_phase(self) -> bool:
        return any(p.kind == PhaseKind.COLD for p in self.phases)

    @property
    def cold_hours(self) -> float:
        return sum(p.duration_hours for p in self.phases if p.kind == PhaseKind.COLD)

    @property
    def room_hours(self) -> float:
        return round(self.total_hours - self.cold_hours, 2)

    def phase(self, kind: PhaseKind) -> Optional[Phase]:
        return next((p for p in self.phases if p.kind == kind), None)


class FlourMixWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: float
    secondary: float


class WeightBreakdown(BaseModel):
    """Absolute ingredient weights in grams, each rounded to 0.1 g."""

    model_config = ConfigDict(frozen=True)

    flour_weight: float
    water_weight: float
    salt_weight: float
    yeast_weight: float
    oil_weight: float
    flour_mix_weights: Optional[FlourMixWeights] = None

    @property
    def total_weight(self) -> float:
        return round(
            self.flour_weight + self.water_weight + self.salt_weight + self.yeast_weight + self.oil_weight,
            1,
        )


class DoughPlan(BaseModel):
    """Deterministic baseline for one request; everything the LLM step consumes."""

    model_config = ConfigDict(frozen=True)

    style_key: str
    dough_ball_count: int
    weight_per_ball: float
    hydration: float
    salt: float
    oil: float
    yeast_type: YeastType
    yeast_percentage: float
    flour_mix: Optional[FlourMix] = None
    schedule: FermentationSchedule
    weights: WeightBreakdown
    oven_type: OvenType
    max_oven_temp: float
    altitude: Optional[float] = None
    autolyse: bool = False

    @property
    def room_temperature(self) -> TemperatureLiteral:
        return self.schedule.room_temperature

    @property
    def cold_temperature(self) -> TemperatureLiteral:
        return self.schedule.cold_temperature

    @property
    def unit(self) -> TemperatureUnit:
        return self.schedule.room_temperature.unit
