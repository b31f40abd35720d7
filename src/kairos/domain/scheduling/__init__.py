# Domain Scheduling Package
from .models import (
    CardRecord,
    Deck,
    Grade,
    ReviewLogEntry,
    SchedulingState,
    State,
    validate_card_record,
)
from .parameters import ParameterSet
from .ports import CardRepository, Clock, DeckRepository

__all__ = [
    "CardRecord",
    "Deck",
    "Grade",
    "ReviewLogEntry",
    "SchedulingState",
    "State",
    "validate_card_record",
    "ParameterSet",
    "CardRepository",
    "Clock",
    "DeckRepository",
]
