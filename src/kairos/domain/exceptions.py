"""Error taxonomy shared by every kairos layer."""


class KairosError(Exception):
    """Base class for all kairos errors."""


class InvalidParameter(KairosError):
    """A parameter set failed validation. Fatal at startup."""


class InvalidState(KairosError):
    """The memory model was handed a state/field combination that cannot occur."""


class InvalidCardRecord(KairosError):
    """A card record is internally inconsistent."""


class CardNotFound(KairosError):
    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class DeckNotFound(KairosError):
    def __init__(self, deck_id: str):
        super().__init__(f"Deck not found: {deck_id}")
        self.deck_id = deck_id


class CorruptStore(KairosError):
    """A storage file exists but cannot be parsed into kairos documents."""

    def __init__(self, path, reason: str):
        super().__init__(f"Store {path} is unreadable: {reason}")
        self.path = path
