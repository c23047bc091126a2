"""
Time Window Policy

Maps instants to meal types and answers the ordering / confirmation /
cancellation window questions. Pure: every answer depends only on the
configured windows and the ``now`` passed in.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from app.utils.enums import MealType
from app.utils.timeutil import civil_instant, to_civil

MealLike = Union[MealType, str]


@dataclass(frozen=True)
class MealWindow:
    meal_type: MealType
    start: dt.time
    end: dt.time

    def contains(self, at: dt.time, end_inclusive: bool = False) -> bool:
        if at < self.start:
            return False
        return at <= self.end if end_inclusive else at < self.end

    def to_dict(self) -> Dict[str, str]:
        return {
            "meal_type": self.meal_type.value,
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
        }


def parse_window(meal_type: MealType, text: str) -> MealWindow:
    """Parse ``"HH:MM-HH:MM"``."""
    try:
        start_s, end_s = [part.strip() for part in text.split("-", 1)]
        start = dt.time.fromisoformat(start_s)
        end = dt.time.fromisoformat(end_s)
    except ValueError as exc:
        raise ValueError(f"invalid window for {meal_type.value}: {text!r}") from exc
    if start >= end:
        raise ValueError(f"window for {meal_type.value} must end after it starts: {text!r}")
    return MealWindow(meal_type=meal_type, start=start, end=end)


def _meal(meal_type: MealLike) -> MealType:
    return meal_type if isinstance(meal_type, MealType) else MealType(meal_type)


class TimeWindowPolicy:
    def __init__(
        self,
        zone_name: str,
        windows: Mapping[MealLike, Union[str, MealWindow]],
        cancel_cutoff_minutes: int = 120,
        end_inclusive: bool = False,
        confirmation_grace_minutes: int = 0,
    ):
        self.zone_name = zone_name
        self.end_inclusive = end_inclusive
        self.cancel_cutoff = dt.timedelta(minutes=cancel_cutoff_minutes)
        self.confirmation_grace = dt.timedelta(minutes=confirmation_grace_minutes)

        parsed: Dict[MealType, MealWindow] = {}
        for key, value in windows.items():
            meal = _meal(key)
            parsed[meal] = value if isinstance(value, MealWindow) else parse_window(meal, value)
        missing = [m.value for m in MealType if m not in parsed]
        if missing:
            raise ValueError(f"missing meal windows: {', '.join(missing)}")

        ordered = sorted(parsed.values(), key=lambda w: w.start)
        for earlier, later in zip(ordered, ordered[1:]):
            overlap = later.start <= earlier.end if end_inclusive else later.start < earlier.end
            if overlap:
                raise ValueError(
                    f"meal windows overlap: {earlier.meal_type.value} and {later.meal_type.value}"
                )
        self.windows = parsed

    @classmethod
    def from_config(cls, config: Mapping) -> "TimeWindowPolicy":
        return cls(
            zone_name=config["CANONICAL_TIMEZONE"],
            windows=config["MEAL_WINDOWS"],
            cancel_cutoff_minutes=int(config.get("CANCEL_CUTOFF_MINUTES", 120)),
            end_inclusive=bool(config.get("MEAL_WINDOW_END_INCLUSIVE", False)),
            confirmation_grace_minutes=int(config.get("CONFIRMATION_GRACE_MINUTES", 0)),
        )

    # Civil time

    def to_civil(self, instant: dt.datetime) -> dt.datetime:
        return to_civil(instant, self.zone_name)

    def today(self, now: dt.datetime) -> dt.date:
        return self.to_civil(now).date()

    def is_past_date(self, day: dt.date, now: dt.datetime) -> bool:
        return day < self.today(now)

    def window(self, meal_type: MealLike) -> MealWindow:
        return self.windows[_meal(meal_type)]

    def meal_start(self, day: dt.date, meal_type: MealLike) -> dt.datetime:
        return civil_instant(day, self.window(meal_type).start, self.zone_name)

    def meal_end(self, day: dt.date, meal_type: MealLike) -> dt.datetime:
        return civil_instant(day, self.window(meal_type).end, self.zone_name)

    # Questions

    def resolve_meal_type(self, instant: dt.datetime) -> Optional[MealType]:
        """Meal whose window contains ``instant``, or None between meals."""
        at = self.to_civil(instant).time().replace(tzinfo=None)
        for window in self.windows.values():
            if window.contains(at, self.end_inclusive):
                return window.meal_type
        return None

    def is_within_ordering_window(self, day: dt.date, meal_type: MealLike, now: dt.datetime) -> bool:
        """Open from any earlier day until the meal ends on ``day``."""
        if self.is_past_date(day, now):
            return False
        return now < self.meal_end(day, meal_type)

    def is_within_confirmation_window(self, meal_type: MealLike, now: dt.datetime) -> bool:
        civil = self.to_civil(now)
        day = civil.date()
        start = self.meal_start(day, meal_type)
        end = self.meal_end(day, meal_type) + self.confirmation_grace
        if now < start:
            return False
        return now <= end if self.end_inclusive else now < end

    def is_past_cancellation_cutoff(self, day: dt.date, meal_type: MealLike, now: dt.datetime) -> bool:
        return now >= self.meal_start(day, meal_type) - self.cancel_cutoff

    def to_dict(self) -> Dict:
        return {
            "timezone": self.zone_name,
            "end_inclusive": self.end_inclusive,
            "windows": [w.to_dict() for w in sorted(self.windows.values(), key=lambda w: w.start)],
        }
