"""
Room Inventory

The in-memory view of everything that occupies one room: blocking
bookings and room blocks. The availability service loads it while
holding the room row lock, so a check followed by an insert cannot
interleave with another writer for the same room.

Strategy (Defense in Depth):
1. Domain validation: RoomInventory.ensure_can_allocate()
2. Pessimistic locking: SELECT ... FOR UPDATE on the room row
3. Database constraint: PostgreSQL EXCLUDE constraint on bookings
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from shared.domain.exceptions import RoomNotAvailable
from shared.domain.value_objects import DateRange

BOOKING = 'booking'
BLOCK = 'block'


@dataclass(frozen=True)
class Allocation:
    """A date range taken by a booking or a room block"""
    source: str
    reference_id: Optional[int]
    dates: DateRange


@dataclass
class RoomInventory:
    room_id: int
    allocations: List[Allocation] = field(default_factory=list)

    def add_booking(self, booking_id: int, check_in: date, check_out: date):
        self.allocations.append(Allocation(BOOKING, booking_id, DateRange(check_in, check_out)))

    def add_block(self, block_id: int, date_from: date, date_to: date):
        self.allocations.append(Allocation(BLOCK, block_id, DateRange(date_from, date_to)))

    def overlapping(self, dates: DateRange) -> List[Allocation]:
        return [allocation for allocation in self.allocations if allocation.dates.overlaps_with(dates)]

    def can_allocate(self, dates: DateRange) -> bool:
        return not self.overlapping(dates)

    def blocked_dates(self, dates: DateRange) -> List[date]:
        """Nights of ``dates`` that are taken, sorted and de-duplicated"""
        taken = set()
        for allocation in self.overlapping(dates):
            taken.update(allocation.dates.intersection(dates).nights())
        return sorted(taken)

    def ensure_can_allocate(self, dates: DateRange):
        blocked = self.blocked_dates(dates)
        if blocked:
            raise RoomNotAvailable(self.room_id, blocked)
