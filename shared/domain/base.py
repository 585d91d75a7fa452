"""
Base Domain Classes

Building blocks shared by the bounded contexts:
- ValueObject: Immutable objects compared by value
- DomainEvent: Something that happened inside a unit of work
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass
class DomainEvent:
    """
    Base class for domain events

    Events are collected by the unit of work and published only after the
    surrounding transaction commits. ``property_id`` is the tenant that
    produced the event.
    """
    property_id: int = 0
    aggregate_id: Optional[int] = None
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert event to dictionary for serialization"""
        return {
            'event_id': str(self.event_id),
            'event_type': self.__class__.__name__,
            'occurred_at': self.occurred_at.isoformat(),
            'property_id': self.property_id,
            'aggregate_id': self.aggregate_id,
        }
