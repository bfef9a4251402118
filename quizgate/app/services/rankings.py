"""Percentile rankings for the ten quiz dimensions.

Each dimension is ranked independently against a fixed normal population
(mean 20, standard deviation 5). The normal CDF is approximated with
``0.5 * (1 + tanh(z / sqrt(2)))``, and results are rounded half-up to an
integer in [0, 100].
"""

import math
from datetime import datetime
from typing import Any, Mapping

from quizgate.app.core.utils import utcnow
from quizgate.app.exceptions import InputValidationError

DIMENSIONS = (
    "egoism",
    "greed",
    "mach",
    "moral",
    "narcissism",
    "power",
    "psychopathy",
    "sadism",
    "selfcentered",
    "spitefulness",
)

SCORE_MEAN = 20.0
SCORE_STD_DEV = 5.0
# Size of the simulated population the distribution was fitted to.
TOTAL_COMPARISONS = 1000


def percentile(score: float, mean: float = SCORE_MEAN, std_dev: float = SCORE_STD_DEV) -> int:
    z = (score - mean) / std_dev
    value = 100 * (0.5 * (1 + math.tanh(z / math.sqrt(2))))
    return min(100, max(0, math.floor(value + 0.5)))


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_scores(payload: Any, coerce_invalid: bool = False) -> dict[str, float]:
    """Extract the ten dimension scores from a request body.

    Args:
        payload: Decoded JSON body
        coerce_invalid: Replace missing or non-numeric scores with 0
            instead of rejecting the request

    Raises:
        InputValidationError: Body is not an object, or a score is missing
            or not a number (when not coercing)
    """
    if not isinstance(payload, Mapping):
        raise InputValidationError("Request body must be an object of dimension scores")

    scores: dict[str, float] = {}
    for dim in DIMENSIONS:
        value = payload.get(dim)
        if _is_number(value):
            scores[dim] = value
        elif coerce_invalid:
            scores[dim] = 0
        else:
            raise InputValidationError(f"Score missing or not a number: {dim}")
    return scores


def calculate_rankings(scores: Mapping[str, float]) -> dict[str, int]:
    return {dim: percentile(scores[dim]) for dim in DIMENSIONS}


def build_rankings_response(
    payload: Any,
    coerce_invalid: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    scores = validate_scores(payload, coerce_invalid)
    return {
        "message": "Rankings calculated",
        "rankings": calculate_rankings(scores),
        "userScores": scores,
        "totalComparisons": TOTAL_COMPARISONS,
        "calculatedAt": (now or utcnow()).isoformat(),
    }
