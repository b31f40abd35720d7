# Infrastructure Adapters Package
from .clock import FixedClock, SystemClock
from .memory_store import InMemoryCardRepository
from .yaml_store import YamlCardRepository

__all__ = ["FixedClock", "SystemClock", "InMemoryCardRepository", "YamlCardRepository"]
