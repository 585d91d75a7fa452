"""
Rate Calculator

Pure nightly pricing. Given a room, a stay and the property's rates it
picks one rate per night and sums the result. No database access, so
the same inputs always produce the same ``StayPrice``.

Priority per night (highest first):
    special > seasonal > weekend > longstay > base rate > room base price

Ties inside one priority level go to the lowest rate id.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from shared.domain.value_objects import DateRange, apply_discount, round_half_up

BASE_PRICE_NAME = 'Base price'

RATE_PRIORITY = {
    'special': 5,
    'seasonal': 4,
    'weekend': 3,
    'longstay': 2,
    'base': 1,
}

DATED_RATE_TYPES = frozenset({'special', 'seasonal'})


def day_of_week(night: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (night.weekday() + 1) % 7


@dataclass(frozen=True)
class RateRule:
    id: int
    name: str
    type: str
    price: Optional[int] = None
    discount_percent: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_stay: int = 1
    applies_to_rooms: Tuple[int, ...] = ()
    days_of_week: Tuple[int, ...] = ()
    is_active: bool = True

    @property
    def priority(self) -> int:
        return RATE_PRIORITY.get(self.type, 0)

    def applies_to_room(self, room_id: int) -> bool:
        return not self.applies_to_rooms or room_id in self.applies_to_rooms

    def in_window(self, night: date) -> bool:
        # both ends inclusive
        if self.date_from is not None and night < self.date_from:
            return False
        if self.date_to is not None and night > self.date_to:
            return False
        return True

    def matches(self, room_id: int, night: date, nights: int) -> bool:
        if not self.is_active or self.priority == 0:
            return False
        if not self.applies_to_room(room_id):
            return False
        if self.min_stay and nights < self.min_stay:
            return False
        if self.type in DATED_RATE_TYPES and (self.date_from is None or self.date_to is None):
            return False
        if not self.in_window(night):
            return False
        if self.type == 'weekend' and not self.days_of_week:
            return False
        if self.days_of_week and day_of_week(night) not in self.days_of_week:
            return False
        return True

    def nightly_price(self, base_price: int) -> int:
        # a discount wins over an absolute price when both are set
        if self.discount_percent is not None:
            return apply_discount(base_price, self.discount_percent)
        if self.price is not None:
            return self.price
        return base_price


@dataclass(frozen=True)
class NightPrice:
    date: date
    price: int
    rate_name: str
    rate_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {'date': self.date.isoformat(), 'price': self.price, 'rate_name': self.rate_name}


@dataclass(frozen=True)
class StayPrice:
    nights: int
    total: int
    breakdown: Tuple[NightPrice, ...] = field(default_factory=tuple)

    @property
    def price_per_night(self) -> int:
        return round_half_up(Decimal(self.total) / Decimal(self.nights))

    @property
    def rate_applied(self) -> str:
        """Single rate name, or ``Mixed (a, b)`` in order of first use"""
        names = list(dict.fromkeys(night.rate_name for night in self.breakdown))
        if len(names) == 1:
            return names[0]
        return f"Mixed ({', '.join(names)})"

    @property
    def rate_ids(self) -> List[int]:
        return sorted({night.rate_id for night in self.breakdown if night.rate_id is not None})

    def to_dict(self) -> dict:
        return {
            'nights': self.nights,
            'total': self.total,
            'price_per_night': self.price_per_night,
            'rate_applied': self.rate_applied,
            'breakdown': [night.to_dict() for night in self.breakdown],
        }


def find_best_rate(rules: Sequence[RateRule], room_id: int, night: date, nights: int) -> Optional[RateRule]:
    candidates = [rule for rule in rules if rule.matches(room_id, night, nights)]
    if not candidates:
        return None
    return min(candidates, key=lambda rule: (-rule.priority, rule.id))


def price_stay_for_room(
    room,
    check_in: date,
    check_out: date,
    rates: Iterable[RateRule],
    explicit_rate: Optional[RateRule] = None,
) -> StayPrice:
    """
    Price every night of ``[check_in, check_out)`` for ``room``.

    ``room`` needs ``pk`` (or ``id``) and ``base_price``. With
    ``explicit_rate`` that rate prices every night regardless of its
    conditions. Raises InvalidDateRange for an empty or inverted stay.
    """
    stay = DateRange(check_in, check_out)
    nights = len(stay)
    room_id = getattr(room, 'pk', None) or room.id
    rules = list(rates)

    breakdown = []
    for night in stay.nights():
        rule = explicit_rate or find_best_rate(rules, room_id, night, nights)
        if rule is None:
            breakdown.append(NightPrice(night, room.base_price, BASE_PRICE_NAME))
        else:
            breakdown.append(NightPrice(night, rule.nightly_price(room.base_price), rule.name, rule.id))

    return StayPrice(
        nights=nights,
        total=sum(night.price for night in breakdown),
        breakdown=tuple(breakdown),
    )
