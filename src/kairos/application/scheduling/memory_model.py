"""
FSRS-6 memory model.

Stateless pure functions over (stability, difficulty, elapsed time, grade).
The forgetting curve is the power law R(t) = (1 + F * t / S) ^ -w20, with F
chosen so that R(S) = 0.9. Nothing here reads the clock or touches storage.
"""

import math
import random
import sys

from kairos.domain.constants import (
    FUZZ_MIN_INTERVAL,
    FUZZ_MIN_RESULT,
    FUZZ_RANGES,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    SAME_DAY_THRESHOLD_DAYS,
    STABILITY_MIN,
)
from kairos.domain.exceptions import InvalidState
from kairos.domain.scheduling.models import Grade, SchedulingState, State
from kairos.domain.scheduling.parameters import ParameterSet

_LOG_FLOAT_MAX = math.log(sys.float_info.max)


def _clamp_difficulty(difficulty: float) -> float:
    return min(max(difficulty, MIN_DIFFICULTY), MAX_DIFFICULTY)


def _require_memory(sched: SchedulingState) -> tuple[float, float]:
    if sched.stability is None or sched.difficulty is None:
        raise InvalidState(f"{sched.state.name} state without stability/difficulty")
    if sched.stability <= 0:
        raise InvalidState(f"Non-positive stability {sched.stability}")
    return sched.stability, sched.difficulty


# ---------- Forgetting curve ----------


def retrievability(stability: float, elapsed_days: float, params: ParameterSet) -> float:
    """
    Probability of recall after elapsed_days for a memory of the given stability.

    Always in (0, 1]; exactly 1 when elapsed_days is 0. Negative elapsed time
    (clock skew) counts as 0.
    """
    if stability <= 0:
        raise InvalidState(f"Retrievability needs positive stability, got {stability}")
    elapsed = max(0.0, elapsed_days)
    if elapsed == 0:
        return 1.0
    r = (1 + params.factor * elapsed / stability) ** params.decay
    # Very long gaps underflow towards 0; keep the open lower bound.
    return max(r, math.ulp(0.0))


def interval_from_stability(
    stability: float,
    desired_retention: float,
    maximum_interval: int,
    decay: float,
) -> int:
    """
    Whole days until retrievability falls to desired_retention, clamped to [1, M].

    This is the forgetting curve solved for t.
    """
    if stability <= 0:
        raise InvalidState(f"Interval needs positive stability, got {stability}")
    factor = 0.9 ** (1 / decay) - 1
    # Solved in log space: tiny retention targets overflow a direct power.
    exponent = math.log(desired_retention) / decay
    if exponent >= _LOG_FLOAT_MAX:
        return maximum_interval
    raw = (stability / factor) * math.expm1(exponent)
    # Clamp before rounding so huge stabilities never overflow int().
    raw = min(raw, float(maximum_interval))
    return max(1, min(round(raw), maximum_interval))


def next_interval(stability: float, params: ParameterSet) -> int:
    return interval_from_stability(
        stability, params.desired_retention, params.maximum_interval, params.decay
    )


def fuzz_range(interval: int, params: ParameterSet) -> tuple[int, int]:
    """Inclusive (min, max) window the fuzzed interval is drawn from."""
    delta = 1.0
    for start, end, factor in FUZZ_RANGES:
        delta += factor * max(min(interval, end) - start, 0.0)
    delta *= params.fuzz_factor

    min_ivl = max(FUZZ_MIN_RESULT, round(interval - delta))
    max_ivl = min(round(interval + delta), params.maximum_interval)
    min_ivl = min(min_ivl, max_ivl)
    return min_ivl, max_ivl


def fuzz_interval(interval: int, seed: str, params: ParameterSet) -> int:
    """
    Spread an interval over a small window so cards do not clump on one day.

    Deterministic for a given seed. Short intervals are returned unchanged,
    and the result never leaves [1, maximum_interval].
    """
    if not params.enable_fuzzing or interval < FUZZ_MIN_INTERVAL:
        return interval
    min_ivl, max_ivl = fuzz_range(interval, params)
    rng = random.Random(seed)
    fuzzed = rng.randint(min_ivl, max_ivl)
    return max(1, min(fuzzed, params.maximum_interval))


# ---------- Initialization ----------


def initial_stability(grade: Grade, params: ParameterSet) -> float:
    """Grade-indexed lookup in the weight vector (w0..w3)."""
    return max(params.weights[grade - 1], STABILITY_MIN)


def initial_difficulty(grade: Grade, params: ParameterSet, clamp: bool = True) -> float:
    w = params.weights
    difficulty = w[4] - math.exp(w[5] * (grade - 1)) + 1
    return _clamp_difficulty(difficulty) if clamp else difficulty


# ---------- Updates ----------


def updated_difficulty(difficulty: float, grade: Grade, params: ParameterSet) -> float:
    """
    Blend the latest grade into an existing difficulty.

    The grade shifts difficulty with linear damping near the ceiling, then the
    result is pulled towards the Easy starting difficulty (mean reversion).
    """
    w = params.weights
    delta = -w[6] * (grade - 3)
    damped = difficulty + (MAX_DIFFICULTY - difficulty) * delta / 9
    target = initial_difficulty(Grade.Easy, params, clamp=False)
    return _clamp_difficulty(w[7] * target + (1 - w[7]) * damped)


def recall_stability(
    stability: float, difficulty: float, r: float, grade: Grade, params: ParameterSet
) -> float:
    """Stability after a successful recall (Hard, Good or Easy)."""
    w = params.weights
    hard_penalty = w[15] if grade == Grade.Hard else 1.0
    easy_bonus = w[16] if grade == Grade.Easy else 1.0
    growth = (
        math.exp(w[8])
        * (11 - difficulty)
        * stability ** -w[9]
        * (math.exp((1 - r) * w[10]) - 1)
        * hard_penalty
        * easy_bonus
    )
    return max(stability * (1 + growth), STABILITY_MIN)


def lapse_stability(
    stability: float, difficulty: float, r: float, params: ParameterSet
) -> float:
    """
    Stability after forgetting. Strictly below the prior stability unless the
    prior value already sits on the floor.
    """
    w = params.weights
    long_term = (
        w[11]
        * difficulty ** -w[12]
        * ((stability + 1) ** w[13] - 1)
        * math.exp((1 - r) * w[14])
    )
    short_term_cap = stability / math.exp(w[17] * w[18])
    return max(min(long_term, short_term_cap), STABILITY_MIN)


def short_term_stability(stability: float, grade: Grade, params: ParameterSet) -> float:
    """Stability after a review on the same day as the previous one."""
    w = params.weights
    increase = math.exp(w[17] * (grade - 3 + w[18])) * stability ** -w[19]
    if grade >= Grade.Good:
        increase = max(increase, 1.0)
    return max(stability * increase, STABILITY_MIN)


# ---------- Dispatch ----------


def next_stability(
    sched: SchedulingState, grade: Grade, elapsed_days: float, params: ParameterSet
) -> float:
    """
    Stability after grading a card in the given scheduling state.

    New and Learning cards are still being acquired, so their stability comes
    from the initialization lookup. Relearning and same-day reviews use the
    short-term formula. Review cards use the recall or lapse formula.
    """
    if sched.state in (State.New, State.Learning):
        return initial_stability(grade, params)

    stability, difficulty = _require_memory(sched)

    if sched.state == State.Relearning:
        return short_term_stability(stability, grade, params)

    r = retrievability(stability, elapsed_days, params)
    if grade == Grade.Again:
        return lapse_stability(stability, difficulty, r, params)
    if elapsed_days < SAME_DAY_THRESHOLD_DAYS:
        return short_term_stability(stability, grade, params)
    return recall_stability(stability, difficulty, r, grade, params)


def next_difficulty(sched: SchedulingState, grade: Grade, params: ParameterSet) -> float:
    if sched.state in (State.New, State.Learning):
        return initial_difficulty(grade, params)
    _, difficulty = _require_memory(sched)
    return updated_difficulty(difficulty, grade, params)
