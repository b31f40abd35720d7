"""
Parameter set for the memory model and scheduler.

A ParameterSet is validated once at construction and is immutable afterwards,
so every downstream computation can assume its values are in range.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from kairos.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_FUZZ_FACTOR,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_PARAMETERS,
    DEFAULT_RELEARNING_STEPS,
    LOWER_BOUNDS_PARAMETERS,
    PARAMETER_COUNT,
    UPPER_BOUNDS_PARAMETERS,
)
from kairos.domain.exceptions import InvalidParameter


@dataclass(frozen=True)
class ParameterSet:
    """
    Immutable bundle of model weights and scheduling configuration.

    Attributes:
        weights: FSRS-6 weight vector (21 reals).
        desired_retention: Target recall probability, strictly between 0 and 1.
        maximum_interval: Longest interval the scheduler may assign (days).
        enable_fuzzing: Whether long review intervals get a deterministic jitter.
        fuzz_factor: Multiplier on the fuzz window (0 disables jitter in practice).
        learning_steps: Step durations (minutes) for new cards.
        relearning_steps: Step durations (minutes) after a lapse.
    """

    weights: tuple[float, ...] = DEFAULT_PARAMETERS
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    enable_fuzzing: bool = True
    fuzz_factor: float = DEFAULT_FUZZ_FACTOR
    learning_steps: tuple[float, ...] = field(default=DEFAULT_LEARNING_STEPS)
    relearning_steps: tuple[float, ...] = field(default=DEFAULT_RELEARNING_STEPS)

    def __post_init__(self):
        # Accept any sequence from callers but store tuples.
        object.__setattr__(self, "weights", _as_floats("weights", self.weights))
        object.__setattr__(
            self, "learning_steps", _as_floats("learning_steps", self.learning_steps)
        )
        object.__setattr__(
            self, "relearning_steps", _as_floats("relearning_steps", self.relearning_steps)
        )
        self._validate()

    def _validate(self) -> None:
        if len(self.weights) != PARAMETER_COUNT:
            raise InvalidParameter(
                f"Expected {PARAMETER_COUNT} weights, got {len(self.weights)}"
            )

        for index, (value, lower, upper) in enumerate(
            zip(self.weights, LOWER_BOUNDS_PARAMETERS, UPPER_BOUNDS_PARAMETERS)
        ):
            if not math.isfinite(value) or not lower <= value <= upper:
                raise InvalidParameter(
                    f"Weight w{index}={value} outside [{lower}, {upper}]"
                )

        if not 0.0 < self.desired_retention < 1.0:
            raise InvalidParameter(
                f"desired_retention must be in (0, 1), got {self.desired_retention}"
            )

        if isinstance(self.maximum_interval, bool) or not isinstance(self.maximum_interval, int):
            raise InvalidParameter(
                f"maximum_interval must be a whole number of days, got {self.maximum_interval!r}"
            )
        if self.maximum_interval <= 0:
            raise InvalidParameter(
                f"maximum_interval must be positive, got {self.maximum_interval}"
            )

        if not math.isfinite(self.fuzz_factor) or self.fuzz_factor < 0:
            raise InvalidParameter(f"fuzz_factor must be >= 0, got {self.fuzz_factor}")

        for name, steps in (
            ("learning_steps", self.learning_steps),
            ("relearning_steps", self.relearning_steps),
        ):
            for minutes in steps:
                if not math.isfinite(minutes) or minutes <= 0:
                    raise InvalidParameter(f"{name} entries must be positive, got {minutes}")

    @property
    def decay(self) -> float:
        """Exponent of the power-law forgetting curve (negative)."""
        return -self.weights[20]

    @property
    def factor(self) -> float:
        """Scale chosen so that retrievability is 0.9 when elapsed == stability."""
        return 0.9 ** (1 / self.decay) - 1


def _as_floats(name: str, values: Sequence[float]) -> tuple[float, ...]:
    try:
        return tuple(float(v) for v in values)
    except (TypeError, ValueError) as e:
        raise InvalidParameter(f"{name} must be a sequence of numbers: {e}") from e
