"""
Value types shared by the leg estimator and the trip chainer.

Collaborator rows (ORM objects, CSV rows, API payloads) are converted into
these before they reach the estimator, so the estimator never sees storage
details.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DayType(str, Enum):
    WEEKDAY = "Weekday"
    SATURDAY = "Saturday"
    SUNDAY_HOLIDAY = "Sunday/Holiday"


class TransportMode(str, Enum):
    BUS = "Bus"
    QCBUS = "QCBus"
    TRAIN = "Train"
    JEEP = "Jeep"
    EJEEP = "Ejeep"
    WALKING = "Walking"
    BICYCLE = "Bicycle"
    TRICYCLE = "Tricycle"


# Modes with no boarding step: the whole leg is travel.
DURATION_ONLY_MODES = frozenset({TransportMode.WALKING, TransportMode.BICYCLE})


@dataclass(frozen=True)
class Mode:
    """A known transport mode, or a free-text label the user typed in."""
    known: TransportMode | None = None
    custom_label: str | None = None

    @classmethod
    def parse(cls, text: str | None) -> Mode:
        if not text:
            raise ValueError("Mode label must be a non-empty string.")
        try:
            return cls(known=TransportMode(text))
        except ValueError:
            return cls(custom_label=text)

    @property
    def label(self) -> str:
        return self.known.value if self.known is not None else self.custom_label

    @property
    def is_duration_only(self) -> bool:
        return self.known in DURATION_ONLY_MODES

    def __str__(self) -> str:
        return self.label


class EstimateSource(str, Enum):
    """Where a leg's numbers came from."""
    HISTORICAL = "historical"
    SCHEDULE = "schedule"
    DEFAULT = "default"


@dataclass(frozen=True)
class RouteInfo:
    id: str
    name: str
    mode: Mode
    origin: str = ""
    destination: str = ""


@dataclass(frozen=True)
class TripRecord:
    """One historical trip: four HH:MM[:SS] stamps plus optional extras."""
    arrived: str | None
    boarded: str | None
    departed: str | None
    dropped: str | None
    reached_next: str | None = None
    missed_cycles: int = 0


@dataclass(frozen=True)
class ScheduleEntry:
    day_type: DayType
    interval_minutes: float
    start_time: str | None = None  # HH:MM; None → from start of day
    end_time: str | None = None    # HH:MM; None → to end of day


@dataclass(frozen=True)
class Timing:
    wait: float
    travel: float

    @property
    def total(self) -> float:
        return self.wait + self.travel


@dataclass(frozen=True)
class LegEstimate:
    best: Timing
    safe: Timing
    worst: Timing
    source: EstimateSource
    interval: float = 0.0  # schedule interval matched for the safe scenario

    def is_ordered(self) -> bool:
        """True when best ≤ safe ≤ worst holds for the leg totals."""
        return self.best.total <= self.safe.total <= self.worst.total


@dataclass(frozen=True)
class ClockTriple:
    """Running best/safe/worst clocks, in minutes past reference midnight."""
    best: float
    safe: float
    worst: float

    @classmethod
    def starting_at(cls, minutes: float) -> ClockTriple:
        return cls(minutes, minutes, minutes)

    def advance(self, estimate: LegEstimate) -> ClockTriple:
        # Each clock only ever moves by its own scenario's numbers.
        return ClockTriple(
            best=self.best + estimate.best.total,
            safe=self.safe + estimate.safe.total,
            worst=self.worst + estimate.worst.total,
        )
