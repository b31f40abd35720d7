"""kairos: FSRS spaced-repetition scheduling for flashcard decks."""

from kairos.consts import VERSION

__version__ = VERSION
