"""Character-ratio token estimator used for every budget comparison."""

import math

from habit_coach.config import get_settings


def estimate_tokens(text: str, chars_per_token: float | None = None) -> int:
    """Approximate the token count of ``text``.

    The ratio is a fixed heuristic rather than a real tokenizer. Only
    monotonicity and determinism matter for budget checks.
    """
    if not text:
        return 0
    ratio = chars_per_token or get_settings().chars_per_token
    return math.ceil(len(text) / ratio)
