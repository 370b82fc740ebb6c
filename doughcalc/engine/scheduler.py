"""Fermentation scheduler.

Turns a fermentation class into ordered phases::

    mix -> bulk (room) -> ball -> [cold] -> proof -> ready

Canonical classes use fixed durations. Custom schedules derive the total
from a target ready time; totals above the cold-phase threshold get a fixed
room bulk followed by a cold phase, shorter ones stay at room temperature.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from doughcalc.engine.units import format_number, round_to
from doughcalc.models.models import (
    FermentationClass,
    FermentationSchedule,
    Phase,
    PhaseKind,
    TemperatureLiteral,
)
from doughcalc.utils.errors import ValidationError
from doughcalc.utils.logger import logger


MIX_HOURS = 0.5
BALL_HOURS = 0.5
COLD_PROOF_HOURS = 2.0
MAX_ROOM_PROOF_HOURS = 3.0
ROOM_PROOF_SHARE = 0.4

# (total hours, [(kind, hours), ...]) per canonical class
CANONICAL_SCHEDULES: dict[FermentationClass, tuple[float, list[tuple[PhaseKind, float]]]] = {
    FermentationClass.QUICK: (
        4,
        [(PhaseKind.MIX, 0.5), (PhaseKind.BULK, 1.5), (PhaseKind.BALL, 0.5), (PhaseKind.PROOF, 1.5)],
    ),
    FermentationClass.SAME_DAY: (
        12,
        [(PhaseKind.MIX, 0.5), (PhaseKind.BULK, 8), (PhaseKind.BALL, 0.5), (PhaseKind.PROOF, 3)],
    ),
    FermentationClass.OVERNIGHT: (
        20,
        [
            (PhaseKind.MIX, 0.5),
            (PhaseKind.BULK, 2),
            (PhaseKind.BALL, 0.5),
            (PhaseKind.COLD, 15),
            (PhaseKind.PROOF, 2),
        ],
    ),
    FermentationClass.COLD: (
        72,
        [
            (PhaseKind.MIX, 0.5),
            (PhaseKind.BULK, 1),
            (PhaseKind.BALL, 0.5),
            (PhaseKind.COLD, 68),
            (PhaseKind.PROOF, 2),
        ],
    ),
}

PHASE_DESCRIPTIONS: dict[PhaseKind, str] = {
    PhaseKind.MIX: "Combine flour and water, add salt and yeast, mix and rest briefly before kneading",
    PhaseKind.BULK: "Bulk fermentation covered at room temperature",
    PhaseKind.BALL: "Divide the dough and shape tight balls",
    PhaseKind.COLD: "Cold fermentation in the refrigerator, containers sealed",
    PhaseKind.PROOF: "Final proof at room temperature until the balls relax and puff",
}

PHASE_MILESTONES: dict[PhaseKind, tuple[str, ...]] = {
    PhaseKind.MIX: ("No dry flour remains", "Dough smooth after kneading"),
    PhaseKind.BULK: ("Dough visibly domed", "Small bubbles on the surface"),
    PhaseKind.BALL: ("Smooth, taut surface on every ball",),
    PhaseKind.COLD: ("Slow, steady rise", "Flavor develops"),
    PhaseKind.PROOF: ("Balls relaxed and puffy", "Dough springs back slowly when pressed"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FermentationScheduler:
    """Builds fermentation schedules for canonical and custom classes.

    The custom rules (cold threshold, room phase length, minimum hours) are
    constructor arguments so the service can load them from configuration.
    """

    def __init__(
        self,
        cold_threshold_hours: float = 12,
        custom_room_phase_hours: float = 2,
        min_custom_hours: float = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.cold_threshold_hours = cold_threshold_hours
        self.custom_room_phase_hours = custom_room_phase_hours
        self.min_custom_hours = min_custom_hours
        self._clock = clock or _utcnow

    def custom_total_hours(
        self, target: Optional[datetime] = None, planned_hours: Optional[float] = None
    ) -> float:
        """Total hours for a custom schedule.

        The delta between now and ``target`` wins; ``planned_hours`` (the
        requested duration) is used only when no target is given.

        Raises:
            ValidationError: neither value given, or the total is below the floor.
        """
        if target is not None:
            if target.tzinfo is None:
                target = target.replace(tzinfo=timezone.utc)
            total = round_to((target - self._clock()).total_seconds() / 3600, 2)
        elif planned_hours is not None:
            total = round_to(planned_hours, 2)
        else:
            raise ValidationError("Custom fermentation requires fermentation.targetDate or duration")

        if total < self.min_custom_hours:
            raise ValidationError(
                f"Custom fermentation needs at least {format_number(self.min_custom_hours)} hours, "
                f"got {format_number(max(total, 0))} hours"
            )
        return total

    def schedule(
        self,
        fermentation_class: FermentationClass,
        room: TemperatureLiteral,
        cold: TemperatureLiteral,
        total_hours: Optional[float] = None,
    ) -> FermentationSchedule:
        """Build the phase list.

        Args:
            fermentation_class: Canonical class or custom.
            room: Room-temperature literal echoed into every room phase.
            cold: Refrigeration literal echoed into the cold phase.
            total_hours: Custom total from ``custom_total_hours``; ignored otherwise.

        Raises:
            ValidationError: custom class without total hours.
        """
        if fermentation_class == FermentationClass.CUSTOM:
            if total_hours is None:
                raise ValidationError("Custom fermentation requires fermentation.targetDate or duration")
            total, durations = total_hours, self._custom_durations(total_hours)
        else:
            total, durations = CANONICAL_SCHEDULES[fermentation_class]

        phases = tuple(
            Phase(
                kind=kind,
                temperature=cold if kind == PhaseKind.COLD else room,
                duration_hours=hours,
                description=PHASE_DESCRIPTIONS[kind],
                milestones=PHASE_MILESTONES[kind],
            )
            for kind, hours in durations
        )
        schedule = FermentationSchedule(
            fermentation_class=fermentation_class,
            total_hours=total,
            phases=phases,
            room_temperature=room,
            cold_temperature=cold,
        )
        logger.debug(
            f"Schedule {fermentation_class.value}: {format_number(total)}h, "
            f"phases={[(p.kind.value, p.duration_hours) for p in phases]}"
        )
        return schedule

    def _custom_durations(self, total: float) -> list[tuple[PhaseKind, float]]:
        if total > self.cold_threshold_hours:
            room = self.custom_room_phase_hours
            cold_hours = round_to(total - MIX_HOURS - room - BALL_HOURS - COLD_PROOF_HOURS, 2)
            return [
                (PhaseKind.MIX, MIX_HOURS),
                (PhaseKind.BULK, room),
                (PhaseKind.BALL, BALL_HOURS),
                (PhaseKind.COLD, cold_hours),
                (PhaseKind.PROOF, COLD_PROOF_HOURS),
            ]

        remainder = total - MIX_HOURS - BALL_HOURS
        proof = round_to(min(MAX_ROOM_PROOF_HOURS, ROOM_PROOF_SHARE * remainder), 2)
        bulk = round_to(remainder - proof, 2)
        return [
            (PhaseKind.MIX, MIX_HOURS),
            (PhaseKind.BULK, bulk),
            (PhaseKind.BALL, BALL_HOURS),
            (PhaseKind.PROOF, proof),
        ]
