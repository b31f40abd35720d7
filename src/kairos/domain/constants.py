"""Centralized constants for the kairos scheduler.

All model defaults and numeric bounds live here so every layer
imports from a single source of truth.
"""

import math

# ---------- FSRS-6 weights ----------
PARAMETER_COUNT = 21

DEFAULT_PARAMETERS: tuple[float, ...] = (
    0.2120,  # w0:  initial stability, Again
    1.2931,  # w1:  initial stability, Hard
    2.3065,  # w2:  initial stability, Good
    8.2956,  # w3:  initial stability, Easy
    6.4133,  # w4:  initial difficulty base
    0.8334,  # w5:  initial difficulty grade slope
    3.0194,  # w6:  difficulty delta
    0.0010,  # w7:  difficulty mean reversion
    1.8722,  # w8:  recall stability base
    0.1666,  # w9:  recall stability saturation
    0.7960,  # w10: recall retrievability gain
    1.4835,  # w11: lapse stability base
    0.0614,  # w12: lapse difficulty exponent
    0.2629,  # w13: lapse stability exponent
    1.6483,  # w14: lapse retrievability gain
    0.6014,  # w15: hard penalty
    1.8729,  # w16: easy bonus
    0.5425,  # w17: short-term stability base
    0.0912,  # w18: short-term grade offset
    0.0658,  # w19: short-term stability saturation
    0.1542,  # w20: forgetting curve decay
)

STABILITY_MIN = 0.001
INITIAL_STABILITY_MAX = 100.0

# w17 and w18 must stay positive: together they bound a lapse strictly below
# the pre-lapse stability.
LOWER_BOUNDS_PARAMETERS: tuple[float, ...] = (
    STABILITY_MIN, STABILITY_MIN, STABILITY_MIN, STABILITY_MIN,
    1.0, 0.001, 0.001, 0.001,
    0.0, 0.0, 0.001,
    0.001, 0.001, 0.001, 0.0,
    0.0, 1.0,
    0.001, 0.001, 0.0,
    0.1,
)

UPPER_BOUNDS_PARAMETERS: tuple[float, ...] = (
    INITIAL_STABILITY_MAX, INITIAL_STABILITY_MAX, INITIAL_STABILITY_MAX, INITIAL_STABILITY_MAX,
    10.0, 4.0, 4.0, 0.75,
    4.5, 0.8, 3.5,
    5.0, 0.25, 0.9, 4.0,
    1.0, 6.0,
    2.0, 2.0, 0.8,
    0.8,
)

# ---------- Difficulty ----------
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

# ---------- Scheduling defaults ----------
DEFAULT_DESIRED_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500  # days
DEFAULT_LEARNING_STEPS: tuple[float, ...] = (1.0, 10.0)  # minutes
DEFAULT_RELEARNING_STEPS: tuple[float, ...] = (10.0,)  # minutes
DEFAULT_FUZZ_FACTOR = 1.0

# A single Hard on the first step waits this multiple of the step.
HARD_SINGLE_STEP_MULTIPLIER = 1.5

# Reviews closer together than this use the short-term stability formula.
SAME_DAY_THRESHOLD_DAYS = 1.0

# ---------- Fuzzing ----------
FUZZ_MIN_INTERVAL = 2.5  # days
FUZZ_MIN_RESULT = 2  # days
# (start, end, factor): each band widens the fuzz window by factor per day.
FUZZ_RANGES: tuple[tuple[float, float, float], ...] = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, math.inf, 0.05),
)

# ---------- Time ----------
SECONDS_PER_DAY = 86400.0
MINUTES_PER_DAY = 1440.0
